# utils/config.py
from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]

DATA_FOLDER_ENV = "CC_EXPORT_DATA_FOLDER"
KEEP_AFTER_COMPLETE_ENV = "CC_EXPORT_KEEP_AFTER_COMPLETE"
NEW_QUIZZES_TOKEN_ENV = "CC_EXPORT_NEW_QUIZZES_TOKEN"
DOTENV_LOAD_ENV = "CC_EXPORT_DOTENV_LOAD"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class ExportConfig:
    """
    Settings for where an export stages its files and whether they survive the run.

    data_folder: root for working directories (None -> system temp dir)
    keep_after_complete: leave working/converter dirs on disk after the run (debugging)
    new_quizzes_token: bearer token for the quiz engine export service (None -> not contacted)
    """
    data_folder: Optional[Path] = None
    keep_after_complete: bool = False
    new_quizzes_token: Optional[str] = None

    def root(self) -> Path:
        return Path(self.data_folder) if self.data_folder else Path(tempfile.gettempdir())


def _load_env_if_opted_in(env: Mapping[str, str]) -> None:
    """
    Only load .env files when explicitly opted in (CC_EXPORT_DOTENV_LOAD=1).
    Tests control the environment, so nothing is read by default.
    """
    if env.get(DOTENV_LOAD_ENV) != "1":
        return
    load_dotenv(str(REPO_ROOT / ".env"))
    load_dotenv(str(REPO_ROOT / ".env.local"), override=True)


def load_export_config(env: Optional[Mapping[str, str]] = None) -> ExportConfig:
    """Build an ExportConfig from environment variables (or the given mapping)."""
    if env is None:
        _load_env_if_opted_in(os.environ)
        env = os.environ

    folder = (env.get(DATA_FOLDER_ENV) or "").strip()
    keep = (env.get(KEEP_AFTER_COMPLETE_ENV) or "").strip().lower() in _TRUTHY
    token = (env.get(NEW_QUIZZES_TOKEN_ENV) or "").strip() or None
    return ExportConfig(
        data_folder=Path(folder) if folder else None,
        keep_after_complete=keep,
        new_quizzes_token=token,
    )


__all__ = [
    "ExportConfig",
    "load_export_config",
    "DATA_FOLDER_ENV",
    "KEEP_AFTER_COMPLETE_ENV",
    "NEW_QUIZZES_TOKEN_ENV",
]

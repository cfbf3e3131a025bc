# cartridge/attachments.py
from __future__ import annotations

import itertools
import mimetypes
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from logging_setup import get_logger
from models import Attachment
from utils.fs import ensure_dir, file_hashes

DEFAULT_CONTENT_TYPE = "application/octet-stream"

_EXTRA_TYPES = {
    ".imscc": "application/zip",
    ".zip": "application/zip",
    ".json": "application/json",
}


def mimetype_for(path: Path | str) -> str:
    """Media type from the file extension (cartridge extensions count as zip)."""
    suffix = Path(path).suffix.lower()
    if suffix in _EXTRA_TYPES:
        return _EXTRA_TYPES[suffix]
    guessed, _ = mimetypes.guess_type(str(path))
    return guessed or DEFAULT_CONTENT_TYPE


@dataclass(frozen=True, slots=True)
class UploadedFile:
    """A local file on its way into storage; content_type None means infer from the path."""
    path: Path
    content_type: Optional[str] = None

    def resolved_content_type(self) -> str:
        return self.content_type or mimetype_for(self.path)


class AttachmentStore:
    """
    Durable attachment storage on the local filesystem.

    Files land at <root>/<sha256[:2]>/<sha256>/<filename>, so identical
    artifacts share a slot and the layout stays shallow.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._ids = itertools.count(1)

    def store_for_attachment(self, att: Attachment, uploaded: UploadedFile) -> Attachment:
        src = Path(uploaded.path)
        log = get_logger(stage="attachment", course_id=getattr(getattr(att.context, "course", None), "id", "-"))

        hashes = file_hashes(src)
        dest_dir = self.root / hashes["sha256"][:2] / hashes["sha256"]
        ensure_dir(dest_dir)
        dest = dest_dir / src.name
        shutil.copyfile(src, dest)

        att.filename = src.name
        att.content_type = uploaded.resolved_content_type()
        att.size = dest.stat().st_size
        att.md5 = hashes["md5"]
        att.sha256 = hashes["sha256"]
        att.storage_path = dest
        log.info("stored attachment", extra={"filename": att.filename, "size": att.size})
        return att

    def save(self, att: Attachment) -> bool:
        """Persist the record; False when its stored file is gone (nothing to point at)."""
        if att.storage_path is None or not Path(att.storage_path).is_file():
            return False
        if att.id is None:
            att.id = next(self._ids)
        return True


__all__ = ["AttachmentStore", "UploadedFile", "mimetype_for"]

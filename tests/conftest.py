# tests/conftest.py
from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cartridge.attachments import AttachmentStore  # noqa: E402
from models import (  # noqa: E402
    Assignment,
    ContentExport,
    Course,
    CourseFile,
    Quiz,
    QuizQuestion,
    User,
    WikiPage,
)
from utils.config import ExportConfig  # noqa: E402


# ---------- external content test double ----------
class FakeService:
    """
    In-memory external content service. Records calls; finishes after
    `polls_needed` completion checks; optionally raises from begin_export.
    """
    def __init__(self, key: str = "tool", content: Any = None, polls_needed: int = 1,
                 applies: bool = True, fail_begin: Exception | None = None):
        self.service_key = key
        self.content = content if content is not None else {"items": [1, 2, 3]}
        self.polls_needed = polls_needed
        self.applies = applies
        self.fail_begin = fail_begin
        self.begin_calls: List[Dict[str, Any]] = []
        self.polls = 0

    def applies_to_course(self, course):
        return self.applies

    def begin_export(self, course, opts):
        self.begin_calls.append(dict(opts))
        if self.fail_begin is not None:
            raise self.fail_begin
        return {"id": f"{self.service_key}-1"}

    def export_completed(self, handle):
        self.polls += 1
        return self.polls >= self.polls_needed

    def retrieve_export(self, handle):
        return self.content


class RecordingMigrator:
    """Migrator double that notes when begin/retrieve happen relative to the working dir."""
    def __init__(self, content: Dict[str, Any] | None = None):
        self.content = content or {}
        self.events: List[tuple] = []
        self.exporter = None

    def _dir_exists(self) -> bool:
        d = getattr(self.exporter, "export_dir", None)
        return d is not None and Path(d).exists()

    def _manifest_written(self) -> bool:
        d = getattr(self.exporter, "export_dir", None)
        return d is not None and (Path(d) / "imsmanifest.xml").exists()

    def begin_exports(self, course, content_export, *, selective=False, exported_assets=None):
        self.events.append(("begin", selective, self._dir_exists(), self._manifest_written(),
                            list(exported_assets or [])))
        return {key: None for key in self.content}

    def retrieve_exported_content(self, content_export, pending):
        self.events.append(("retrieve",))
        return dict(self.content)

    def shutdown(self):
        self.events.append(("shutdown",))


# ---------- common fixtures ----------
@pytest.fixture
def course() -> Course:
    return Course(
        id=42,
        name="Intro to Biology",
        pages=[
            WikiPage(id=1, title="Welcome", body="<p>Hello, cells!</p>"),
            WikiPage(id=2, title="Cell Structure", body="<h2>Membranes</h2>"),
        ],
        assignments=[
            Assignment(id=3, title="Lab Report 1", description="<p>Write it up.</p>", points_possible=10),
        ],
        quizzes=[
            Quiz(
                id=7,
                title="Week 1 Quiz",
                description="Basics",
                questions=[
                    QuizQuestion(
                        id=1,
                        text="Which organelle makes ATP?",
                        answers=[{"text": "Mitochondria", "weight": 100}, {"text": "Nucleus", "weight": 0}],
                    ),
                    QuizQuestion(id=2, text="Explain osmosis.", type="essay_question", points=5),
                ],
            ),
        ],
        files=[
            CourseFile(id=9, display_name="syllabus.txt", data=b"Week 1: cells\n", folder="Course Docs"),
        ],
        settings={"default_view": "modules"},
    )


@pytest.fixture
def user() -> User:
    return User(id=5, name="Instructor")


@pytest.fixture
def config(tmp_path: Path) -> ExportConfig:
    data = tmp_path / "work"
    data.mkdir()
    return ExportConfig(data_folder=data)


@pytest.fixture
def storage(tmp_path: Path) -> AttachmentStore:
    return AttachmentStore(tmp_path / "storage")


@pytest.fixture
def make_export(course, user):
    def _make(**kwargs) -> ContentExport:
        kwargs.setdefault("id", 1)
        kwargs.setdefault("course", course)
        kwargs.setdefault("user", user)
        return ContentExport(**kwargs)
    return _make

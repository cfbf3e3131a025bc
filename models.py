#models.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Set, Tuple

from cartridge.helper import create_key

ExportType = Literal[
    "common_cartridge",
    "qti",
    "course_copy",
    "master_course_copy",
    "course_template",
]

WorkflowState = Literal["created", "exporting", "exported", "failed"]


# --------------------- course content ---------------------

@dataclass(frozen=True, slots=True)
class WikiPage:
    id: int
    title: str
    body: str = ""
    url: Optional[str] = None  # slug; derived from title when missing
    updated_at: Optional[datetime] = None

    asset_type = "wiki_pages"

    @property
    def asset_string(self) -> str:
        return f"wiki_page_{self.id}"


@dataclass(frozen=True, slots=True)
class Assignment:
    id: int
    title: str
    description: str = ""
    points_possible: Optional[float] = None
    updated_at: Optional[datetime] = None

    asset_type = "assignments"

    @property
    def asset_string(self) -> str:
        return f"assignment_{self.id}"


@dataclass(frozen=True, slots=True)
class QuizQuestion:
    id: int
    text: str
    type: str = "multiple_choice_question"
    points: float = 1.0
    answers: List[Dict[str, Any]] = field(default_factory=list)  # [{"text": ..., "weight": 100}]


@dataclass(frozen=True, slots=True)
class Quiz:
    id: int
    title: str
    description: str = ""
    questions: List[QuizQuestion] = field(default_factory=list)
    updated_at: Optional[datetime] = None

    asset_type = "quizzes"

    @property
    def asset_string(self) -> str:
        return f"quiz_{self.id}"


@dataclass(frozen=True, slots=True)
class CourseFile:
    id: int
    display_name: str
    data: bytes = b""
    content_type: Optional[str] = None
    folder: str = ""  # "Unit 1/Images" relative to course files root
    updated_at: Optional[datetime] = None

    asset_type = "attachments"

    @property
    def asset_string(self) -> str:
        return f"attachment_{self.id}"


@dataclass(slots=True)
class Course:
    id: int
    name: str
    pages: List[WikiPage] = field(default_factory=list)
    assignments: List[Assignment] = field(default_factory=list)
    quizzes: List[Quiz] = field(default_factory=list)
    files: List[CourseFile] = field(default_factory=list)
    settings: Dict[str, Any] = field(default_factory=dict)
    discussion_checkpoints_enabled: bool = False

    @property
    def asset_string(self) -> str:
        return f"course_{self.id}"


@dataclass(frozen=True, slots=True)
class User:
    id: int
    name: str = ""


# --------------------- attachments ---------------------

@dataclass(slots=True)
class Attachment:
    """A stored export artifact, owned by the export request that produced it."""
    context: Any = None
    user: Optional[User] = None
    filename: Optional[str] = None
    content_type: Optional[str] = None
    size: Optional[int] = None
    storage_path: Optional[Path] = None
    md5: Optional[str] = None
    sha256: Optional[str] = None
    id: Optional[int] = None


# --------------------- export request ---------------------

@dataclass(eq=False)
class ContentExport:
    """
    Export request record. Created by the caller before the run, then only
    mutated to record progress, errors, exported assets and the attachment.

    selected_content: {} means "export everything". Otherwise keys are asset
    types ("wiki_pages", "quizzes", ...) mapping to a set of asset strings, or
    "all_<asset_type>" / "all_course_settings" mapping to True.
    """
    id: int
    course: Any
    user: Optional[User] = None
    export_type: ExportType = "common_cartridge"
    selected_content: Dict[str, Any] = field(default_factory=dict)
    settings: Dict[str, Any] = field(default_factory=dict)
    epub_export: Optional[Any] = None
    disable_content_rewriting: bool = False
    since: Optional[datetime] = None

    workflow_state: WorkflowState = "created"
    progress: int = 0
    error_messages: List[Tuple[str, Optional[str]]] = field(default_factory=list)
    attachment: Optional[Attachment] = None
    exported_assets: Dict[str, None] = field(default_factory=dict)  # ordered set
    items_to_export: List[str] = field(default_factory=list)
    save_count: int = 0
    _key_map: Dict[str, str] = field(default_factory=dict, repr=False)

    @property
    def context(self) -> Any:
        return self.course

    # ----- export flavour predicates -----
    def qti_export(self) -> bool:
        return self.export_type == "qti"

    def common_cartridge(self) -> bool:
        return self.export_type == "common_cartridge"

    def for_course_copy(self) -> bool:
        return self.export_type in ("course_copy", "master_course_copy")

    def for_master_migration(self) -> bool:
        return self.export_type == "master_course_copy"

    def for_course_template(self) -> bool:
        return self.export_type == "course_template"

    def selective_export(self) -> bool:
        return bool(self.selected_content) and not self.selected_content.get("everything")

    def include_new_quizzes_in_export(self) -> bool:
        return bool(self.settings.get("include_new_quizzes"))

    # ----- progress / errors -----
    def add_error(self, message: str, exception: Optional[BaseException] = None) -> None:
        detail = f"{type(exception).__name__}: {exception}" if exception is not None else None
        self.error_messages.append((message, detail))

    def fast_update_progress(self, value: float) -> None:
        self.progress = max(self.progress, min(100, int(value)))

    def add_item_to_export(self, obj: Any) -> None:
        self.items_to_export.append(obj.asset_string)

    def save(self) -> bool:
        self.save_count += 1
        return True

    # ----- selection -----
    def export_object(self, obj: Any, asset_type: Optional[str] = None, ignore_updated_at: bool = False) -> bool:
        if obj is None:
            return False
        if not ignore_updated_at and self.since is not None:
            updated_at = getattr(obj, "updated_at", None)
            if updated_at is not None and updated_at < self.since:
                return False
        if not self.selective_export():
            return True
        asset_type = asset_type or getattr(obj, "asset_type", None)
        if asset_type is None:
            return False
        if self.selected_content.get(f"all_{asset_type}"):
            return True
        return obj.asset_string in set(self.selected_content.get(asset_type) or ())

    def export_symbol(self, symbol: str) -> bool:
        return not self.selective_export() or bool(self.selected_content.get(symbol))

    def add_exported_asset(self, obj: Any) -> None:
        self.exported_assets[obj.asset_string] = None

    def create_key(self, obj: Any, prepend: str = "") -> str:
        asset = obj if isinstance(obj, str) else obj.asset_string
        memo = prepend + asset
        if memo not in self._key_map:
            self._key_map[memo] = create_key(asset, prepend)
        return self._key_map[memo]

    @property
    def exported_asset_strings(self) -> Set[str]:
        return set(self.exported_assets)

# cartridge/exporter.py
from __future__ import annotations

import zipfile
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from cartridge import helper
from cartridge.attachments import AttachmentStore, UploadedFile
from cartridge.converter import CourseJsonConverter
from cartridge.errors import UnsupportedContextError
from cartridge.external_content import Migrator, check_service_key, new_quizzes_service_for
from cartridge.manifest import Manifest
from cartridge.qti_manifest import QtiManifest
from logging_setup import get_logger
from models import Attachment, ContentExport, Course, User
from utils.config import ExportConfig, load_export_config
from utils.fs import atomic_write, iter_files, json_dumps_stable, remove_tree, safe_relpath
from utils.strings import sanitize_slug, truncate_text

EXPORT_ERROR_MESSAGE = "Error running course export."
MAX_ZIP_NAME_LENGTH = 200


class CCExporter:
    """
    Runs one Common Cartridge export for a course.

    Produces exactly one artifact per run, either a zipped cartridge
    (<working dir>/zip_dir/<name>-export.imscc, or -quiz-export.zip for QTI-only)
    or, for blueprint syncs and course templates, the intermediate
    course_export.json written by the converter. The artifact is handed to
    attachment storage and linked on the export request.

    All working directories are removed when the run ends, success or not,
    unless config.keep_after_complete is set.
    """

    def __init__(
        self,
        content_export: Optional[ContentExport],
        *,
        config: Optional[ExportConfig] = None,
        course: Optional[Course] = None,
        user: Optional[User] = None,
        for_course_copy: bool = False,
        version: Optional[str] = None,
        deletions: Optional[Dict[str, List[str]]] = None,
        migrator: Optional[Migrator] = None,
        storage: Optional[AttachmentStore] = None,
        converter_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        self.content_export = content_export
        self.course = course or (content_export.context if content_export is not None else None)
        if not isinstance(self.course, Course):
            raise UnsupportedContextError("CCExporter supports only courses")

        self.config = config or load_export_config()
        self.user = user or (content_export.user if content_export is not None else None)
        self.for_course_copy = for_course_copy
        self.manifest_version = version
        self.deletions = deletions
        self.disable_content_rewriting = bool(content_export and content_export.disable_content_rewriting)
        self.qti_only_export = bool(content_export and content_export.qti_export())
        self.for_master_migration = bool(content_export and content_export.for_master_migration())

        self._owns_migrator = migrator is None
        self.migrator = migrator or self._default_migrator()
        self.storage = storage or AttachmentStore(self.config.root() / "cc_attachments")
        self.converter_factory = converter_factory or CourseJsonConverter

        self.export_dir: Optional[Path] = None
        self.export_dirs: List[Path] = []
        self.manifest: Optional[Union[Manifest, QtiManifest]] = None
        self.zip_file: Optional[zipfile.ZipFile] = None
        self.zip_name: Optional[str] = None
        self.zip_path: Optional[Path] = None
        self.export_path: Optional[Path] = None
        self.export_type: Optional[str] = None
        self._pending_exports: Optional[Dict[str, Future]] = None

        self.log = get_logger(stage="exporter", course_id=self.course.id)

    @classmethod
    def export(cls, content_export: Optional[ContentExport], **opts: Any) -> bool:
        return cls(content_export, **opts).run()

    # --------------------- run ---------------------

    def run(self) -> bool:
        self._set_workflow_state("exporting")
        try:
            if self.for_external_migration() and not self.content_export.selective_export():
                # everything is going out, so the external services can start now
                self._pending_exports = self.migrator.begin_exports(self.course, self.content_export)

            self.create_export_dir()

            if self.qti_only_export:
                self.manifest = QtiManifest(self)
            else:
                self.manifest = Manifest(self, self.manifest_version)
            self.manifest.create_document()
            self.manifest.close()

            if self.for_external_migration():
                if self.content_export.selective_export():
                    # selection is only known once the manifest walked the content
                    self._pending_exports = self.migrator.begin_exports(
                        self.course,
                        self.content_export,
                        selective=True,
                        exported_assets=list(self.content_export.exported_assets),
                    )
                external_content = self.migrator.retrieve_exported_content(
                    self.content_export, self._pending_exports
                )
                self.write_external_content(external_content)
            self.set_progress(60)

            if self.direct_conversion():
                converter = self.converter_factory(
                    unzipped_file_path=self.export_dir,
                    deletions=self.deletions,
                    is_discussion_checkpoints_enabled=self.course.discussion_checkpoints_enabled,
                )
                self.export_dirs.append(Path(converter.base_export_dir))
                converter.export()
                self.export_path = Path(converter.course["full_export_file_path"])
                self.export_type = "application/json"
            else:
                self.create_zip_file()
                self.copy_all_to_zip()
                self.zip_file.close()
                self.export_path = self.zip_path
            self.set_progress(90)

            self.attach_export()
        except Exception as e:
            self.add_error(EXPORT_ERROR_MESSAGE, e)
            self.log.exception("course export failed", extra={"export_id": self.export_id})
            self._set_workflow_state("failed")
            return False
        finally:
            self._cleanup()

        self.set_progress(100)
        self._set_workflow_state("exported")
        self.log.info("course export complete", extra={"export_id": self.export_id, "path": str(self.export_path)})
        return True

    def direct_conversion(self) -> bool:
        return self.for_master_migration or bool(
            self.content_export is not None and self.content_export.for_course_template()
        )

    def attach_export(self) -> Optional[Attachment]:
        """
        Hand the artifact to storage and link it on the export request.
        A failed save leaves the request unlinked without raising.
        """
        if self.content_export is None or self.export_path is None or not self.export_path.exists():
            return None
        att = Attachment(context=self.content_export, user=self.content_export.user)
        self.storage.store_for_attachment(att, UploadedFile(self.export_path, self.export_type))
        if not self.storage.save(att):
            self.log.warning("attachment save failed; export left unlinked", extra={"export_id": self.export_id})
            return None
        self.content_export.attachment = att
        self.content_export.save()
        return att

    def _default_migrator(self) -> Migrator:
        migrator = Migrator()
        token = self.config.new_quizzes_token
        if self.content_export is not None and token:
            service = new_quizzes_service_for(self.content_export, token)
            if service is not None:
                migrator.register(service)
        return migrator

    def _cleanup(self) -> None:
        if self.zip_file is not None:
            self.zip_file.close()
        if self._owns_migrator:
            self.migrator.shutdown()
        if self.config.keep_after_complete:
            self.log.info("keeping export dirs", extra={"dirs": [str(d) for d in self.export_dirs]})
            return
        for export_dir in self.export_dirs:
            try:
                removed = remove_tree(export_dir)
            except OSError as e:
                self.log.warning("could not remove export dir", extra={"path": str(export_dir), "error": str(e)})
                continue
            if removed:
                self.log.debug("removed export dir", extra={"path": str(export_dir)})

    # --------------------- working dir / zip ---------------------

    def create_export_dir(self) -> Path:
        slug = f"common_cartridge_{self.course.id}"
        if self.user is not None:
            slug += f"_user_{self.user.id}"
        folder = self.config.root()

        candidate = folder / slug
        attempt = 1
        while True:
            if not candidate.exists():
                try:
                    candidate.mkdir(parents=True)
                    break
                except FileExistsError:
                    pass  # lost the race for this name; try the next one
            attempt += 1
            candidate = folder / f"{slug}_attempt_{attempt}"

        self.export_dir = candidate
        self.export_dirs.append(candidate)
        self.log.debug("created export dir", extra={"path": str(candidate)})
        return candidate

    def create_zip_file(self) -> Path:
        name = truncate_text(sanitize_slug(self.course.name), MAX_ZIP_NAME_LENGTH, ellipsis="")
        name = name or f"course-{self.course.id}"
        if self.qti_only_export:
            self.zip_name = f"{name}-quiz-export.{helper.QTI_ZIP_EXTENSION}"
        else:
            self.zip_name = f"{name}-export.{helper.CC_EXTENSION}"

        zip_dir = self.export_dir / helper.ZIP_DIR
        zip_dir.mkdir(parents=True, exist_ok=True)
        self.zip_path = zip_dir / self.zip_name
        self.zip_file = zipfile.ZipFile(self.zip_path, "w", compression=zipfile.ZIP_DEFLATED)
        return self.zip_path

    def copy_all_to_zip(self) -> int:
        """Add every file under the working dir (except zip_dir/) once; returns the count added."""
        added = 0
        for path in iter_files(self.export_dir):
            rel = safe_relpath(path, self.export_dir)
            if rel == helper.ZIP_DIR or rel.startswith(helper.ZIP_DIR + "/"):
                continue
            if self._zip_has_entry(rel):
                continue
            self.zip_file.write(path, rel)
            added += 1
        self.log.info("zipped export", extra={"entries": added, "zip": self.zip_name})
        return added

    def _zip_has_entry(self, name: str) -> bool:
        try:
            self.zip_file.getinfo(name)
        except KeyError:
            return False
        return True

    def write_external_content(self, external_content: Optional[Dict[str, Any]]) -> None:
        if not external_content:
            return
        folder = self.export_dir / helper.EXTERNAL_CONTENT_FOLDER
        for service_key, data in external_content.items():
            atomic_write(folder / f"{check_service_key(service_key)}.json", json_dumps_stable(data))

    # --------------------- export request forwarding ---------------------

    @property
    def referenced_files(self) -> Dict[int, str]:
        return self.manifest.referenced_files if self.manifest is not None else {}

    @property
    def errors(self) -> list:
        return self.content_export.error_messages if self.content_export is not None else []

    @property
    def export_id(self) -> Optional[int]:
        return self.content_export.id if self.content_export is not None else None

    def add_error(self, message: str, exception: Optional[BaseException] = None) -> None:
        if self.content_export is not None:
            self.content_export.add_error(message, exception)

    def add_item_to_export(self, obj: Any) -> None:
        if self.content_export is not None:
            self.content_export.add_item_to_export(obj)

    def set_progress(self, progress: float) -> None:
        if self.content_export is not None:
            self.content_export.fast_update_progress(progress)

    def create_key(self, obj: Any, prepend: str = "") -> str:
        if self.content_export is not None:
            return self.content_export.create_key(obj, prepend)
        return helper.create_key(obj, prepend)

    def export_object(self, obj: Any, asset_type: Optional[str] = None, ignore_updated_at: bool = False) -> bool:
        if self.content_export is None:
            return True
        return self.content_export.export_object(obj, asset_type=asset_type, ignore_updated_at=ignore_updated_at)

    def add_exported_asset(self, obj: Any) -> None:
        if self.content_export is not None:
            self.content_export.add_exported_asset(obj)

    def export_symbol(self, symbol: str) -> bool:
        return self.content_export.export_symbol(symbol) if self.content_export is not None else True

    def epub_export(self) -> bool:
        return bool(self.content_export is not None and self.content_export.epub_export)

    def for_external_migration(self) -> bool:
        return self.content_export is not None and not (self.qti_only_export or self.epub_export())

    def include_new_quizzes_in_export(self) -> bool:
        return bool(self.content_export is not None and self.content_export.include_new_quizzes_in_export())

    def new_quizzes_export_url(self) -> Optional[str]:
        return self.content_export.settings.get("new_quizzes_export_url") if self.content_export is not None else None

    def common_cartridge(self) -> bool:
        return bool(self.content_export is not None and self.content_export.common_cartridge())

    def _set_workflow_state(self, state: str) -> None:
        if self.content_export is not None:
            self.content_export.workflow_state = state  # type: ignore[assignment]


__all__ = ["CCExporter", "EXPORT_ERROR_MESSAGE"]

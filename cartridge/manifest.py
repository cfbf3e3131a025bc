# cartridge/manifest.py
from __future__ import annotations

import html
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Set
from xml.etree import ElementTree as ET

from cartridge import helper
from cartridge.errors import ManifestError
from cartridge.qti import add_text_element, generate_qti_assessment, prettify_xml
from logging_setup import get_logger
from utils.fs import atomic_write, safe_relpath
from utils.strings import sanitize_slug

if TYPE_CHECKING:
    from cartridge.exporter import CCExporter


def html_document(title: str, body: str) -> str:
    """Standalone HTML page; the converter reads <title> and <body> back out."""
    return (
        "<html>\n<head>\n"
        '<meta http-equiv="Content-Type" content="text/html; charset=utf-8">\n'
        f"<title>{html.escape(title)}</title>\n"
        "</head>\n<body>\n"
        f"{body or ''}\n"
        "</body>\n</html>\n"
    )


class Manifest:
    """
    Full course manifest builder.

    create_document() writes every exportable content item into the
    exporter's working directory and records one <resource> per item;
    close() serializes imsmanifest.xml next to them.

    Working directory layout:
      imsmanifest.xml
      course_settings/{course_settings.xml, canvas_export.txt}
      wiki_content/<slug>.html
      <key>/{assignment_settings.xml, <slug>.html}
      non_cc_assessments/<key>.xml.qti
      web_resources/<folder>/<file name>
    """

    def __init__(self, exporter: "CCExporter", version: Optional[str] = None) -> None:
        self.exporter = exporter
        self.version = version or helper.DEFAULT_CC_VERSION
        if self.version not in helper.CC_NAMESPACES:
            raise ManifestError(f"unsupported Common Cartridge version: {self.version}")
        self.ns = helper.CC_NAMESPACES[self.version]
        self.document: Optional[ET.Element] = None
        self.resources: Optional[ET.Element] = None
        self.referenced_files: Dict[int, str] = {}
        self.log = get_logger(stage="manifest", course_id=exporter.course.id)

    @property
    def export_dir(self) -> Path:
        return Path(self.exporter.export_dir)

    def _tag(self, name: str, ns: str = "imscc") -> str:
        return f"{{{self.ns[ns]}}}{name}"

    # --------------------- document ---------------------

    def create_document(self) -> ET.Element:
        course = self.exporter.course
        ET.register_namespace("", self.ns["imscc"])
        ET.register_namespace("lomimscc", self.ns["lomimscc"])
        ET.register_namespace("xsi", helper.XSI_NAMESPACE)

        root = ET.Element(self._tag("manifest"))
        root.set("identifier", self.exporter.create_key(course, "common_cartridge_"))
        root.set(
            f"{{{helper.XSI_NAMESPACE}}}schemaLocation",
            f"{self.ns['imscc']} {self.ns['schema_location']}",
        )
        self._add_metadata(root, course.name)

        organizations = ET.SubElement(root, self._tag("organizations"))
        organization = ET.SubElement(
            organizations, self._tag("organization"), identifier="org_1", structure="rooted-hierarchy"
        )
        ET.SubElement(organization, self._tag("item"), identifier="LearningModules")

        self.resources = ET.SubElement(root, self._tag("resources"))
        self.document = root

        self._add_course_settings()
        self.exporter.set_progress(10)
        self._add_wiki_pages()
        self.exporter.set_progress(20)
        self._add_assignments()
        self.exporter.set_progress(30)
        self._add_quizzes()
        self.exporter.set_progress(40)
        self._add_files()
        self.exporter.set_progress(50)

        self.log.info("manifest document built", extra={"resources": len(self.resources)})
        return root

    def close(self) -> Path:
        if self.document is None:
            raise ManifestError("close() called before create_document()")
        path = self.export_dir / helper.MANIFEST
        atomic_write(path, prettify_xml(self.document))
        self.log.debug("wrote manifest", extra={"path": str(path)})
        return path

    def _add_metadata(self, root: ET.Element, title: str) -> None:
        metadata = ET.SubElement(root, self._tag("metadata"))
        add_text_element(metadata, self._tag("schema"), "IMS Common Cartridge")
        add_text_element(metadata, self._tag("schemaversion"), self.version)
        lom = ET.SubElement(metadata, self._tag("lom", "lomimscc"))
        general = ET.SubElement(lom, self._tag("general", "lomimscc"))
        title_elem = ET.SubElement(general, self._tag("title", "lomimscc"))
        add_text_element(title_elem, self._tag("string", "lomimscc"), title)

    def add_resource(self, identifier: str, rtype: str, files: List[Path], href: Optional[Path] = None) -> ET.Element:
        """Register a written file set as one <resource>; paths are relative to the working dir."""
        if self.resources is None:
            raise ManifestError("add_resource() called before create_document()")
        attrs = {"identifier": identifier, "type": rtype}
        if href is not None:
            attrs["href"] = safe_relpath(href, self.export_dir)
        res = ET.SubElement(self.resources, self._tag("resource"), **attrs)
        for f in files:
            ET.SubElement(res, self._tag("file"), href=safe_relpath(f, self.export_dir))
        return res

    # --------------------- content families ---------------------

    def _add_course_settings(self) -> None:
        if not self.exporter.export_symbol("all_course_settings"):
            return
        course = self.exporter.course
        folder = self.export_dir / helper.COURSE_SETTINGS_DIR

        settings = ET.Element("course", identifier=self.exporter.create_key(course), xmlns=helper.CANVAS_NAMESPACE)
        add_text_element(settings, "title", course.name)
        for key in sorted(course.settings):
            add_text_element(settings, "setting", str(course.settings[key]), name=str(key))
        settings_path = folder / "course_settings.xml"
        atomic_write(settings_path, prettify_xml(settings))

        marker = folder / "canvas_export.txt"
        atomic_write(marker, "Course export produced for re-import; see course_settings.xml.\n")

        self.add_resource(
            self.exporter.create_key(course, "course_settings_"),
            helper.LOR,
            [marker, settings_path],
            href=marker,
        )

    def _add_wiki_pages(self) -> None:
        folder = self.export_dir / helper.WIKI_FOLDER
        used: Set[str] = set()
        for page in self.exporter.course.pages:
            if not self.exporter.export_object(page):
                continue
            # url is user input; slug it so the page stays inside wiki_content/
            base = sanitize_slug(page.url or "") or sanitize_slug(page.title)
            slug = _unique_slug(base, f"page-{page.id}", page.id, used)
            path = folder / f"{slug}.html"
            atomic_write(path, html_document(page.title, page.body))
            self.add_resource(self.exporter.create_key(page), helper.WEBCONTENT, [path], href=path)
            self.exporter.add_exported_asset(page)
            self.log.debug("exported page", extra={"page_id": page.id, "path": str(path)})

    def _add_assignments(self) -> None:
        for assignment in self.exporter.course.assignments:
            if not self.exporter.export_object(assignment):
                continue
            key = self.exporter.create_key(assignment)
            folder = self.export_dir / key
            slug = sanitize_slug(assignment.title) or f"assignment-{assignment.id}"

            body_path = folder / f"{slug}.html"
            atomic_write(body_path, html_document(assignment.title, assignment.description))

            settings = ET.Element("assignment", identifier=key, xmlns=helper.CANVAS_NAMESPACE)
            add_text_element(settings, "title", assignment.title)
            if assignment.points_possible is not None:
                add_text_element(settings, "points_possible", f"{assignment.points_possible:g}")
            settings_path = folder / "assignment_settings.xml"
            atomic_write(settings_path, prettify_xml(settings))

            self.add_resource(key, helper.LOR, [body_path, settings_path], href=body_path)
            self.exporter.add_exported_asset(assignment)

    def _add_quizzes(self) -> None:
        folder = self.export_dir / helper.ASSESSMENT_NON_CC_FOLDER
        for quiz in self.exporter.course.quizzes:
            if not self.exporter.export_object(quiz):
                continue
            key = self.exporter.create_key(quiz)
            path = folder / f"{key}.xml.qti"
            atomic_write(path, generate_qti_assessment(quiz, key))
            self.add_resource(key, helper.LOR, [path], href=path)
            self.exporter.add_exported_asset(quiz)

    def _add_files(self) -> None:
        root = self.export_dir / helper.WEB_RESOURCES_FOLDER
        used: Set[Path] = set()
        for f in self.exporter.course.files:
            if not self.exporter.export_object(f):
                continue
            path = root.joinpath(*_folder_segments(f.folder)) / _file_name(f.display_name, f.id)
            while path in used:
                path = path.with_name(f"{path.stem}-{f.id}{path.suffix}")
            used.add(path)
            atomic_write(path, f.data)
            self.add_resource(self.exporter.create_key(f), helper.WEBCONTENT, [path], href=path)
            self.referenced_files[f.id] = safe_relpath(path, self.export_dir)
            self.exporter.add_exported_asset(f)


def _folder_segments(folder: str) -> List[str]:
    return [sanitize_slug(seg) or "folder" for seg in (folder or "").split("/") if seg.strip()]


def _file_name(display_name: str, file_id: int) -> str:
    name = Path(display_name or "").name
    if name in ("", ".", ".."):
        return f"file-{file_id}"
    return name


def _unique_slug(slug: str, fallback: str, item_id: int, used: Set[str]) -> str:
    slug = slug or fallback
    if slug in used:
        slug = f"{slug}-{item_id}"
    used.add(slug)
    return slug


__all__ = ["Manifest", "html_document"]

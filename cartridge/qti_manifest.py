# cartridge/qti_manifest.py
from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional
from xml.etree import ElementTree as ET

from cartridge import helper
from cartridge.errors import ManifestError
from cartridge.qti import generate_assessment_meta, generate_qti_assessment, prettify_xml
from logging_setup import get_logger
from utils.fs import atomic_write, safe_relpath

if TYPE_CHECKING:
    from cartridge.exporter import CCExporter

IMSCP_NAMESPACE = "http://www.imsglobal.org/xsd/imscp_v1p1"


def _tag(name: str) -> str:
    return f"{{{IMSCP_NAMESPACE}}}{name}"


class QtiManifest:
    """
    Quiz-only package: one folder per quiz holding the QTI document and a
    settings sidecar, plus a plain IMS content-packaging manifest.
    """

    def __init__(self, exporter: "CCExporter") -> None:
        self.exporter = exporter
        self.document: Optional[ET.Element] = None
        self.referenced_files: Dict[int, str] = {}
        self.log = get_logger(stage="qti_manifest", course_id=exporter.course.id)

    @property
    def export_dir(self) -> Path:
        return Path(self.exporter.export_dir)

    def create_document(self) -> ET.Element:
        ET.register_namespace("", IMSCP_NAMESPACE)

        course = self.exporter.course
        root = ET.Element(_tag("manifest"), identifier=self.exporter.create_key(course, "qti_export_"))
        metadata = ET.SubElement(root, _tag("metadata"))
        ET.SubElement(metadata, _tag("schema")).text = "IMS Content"
        ET.SubElement(metadata, _tag("schemaversion")).text = "1.1.3"
        ET.SubElement(root, _tag("organizations"))
        resources = ET.SubElement(root, _tag("resources"))

        quizzes = [q for q in course.quizzes if self.exporter.export_object(q)]
        for i, quiz in enumerate(quizzes, start=1):
            key = self.exporter.create_key(quiz)
            folder = self.export_dir / key
            qti_path = folder / f"{key}.xml"
            meta_path = folder / "assessment_meta.xml"
            atomic_write(qti_path, generate_qti_assessment(quiz, key))
            atomic_write(meta_path, generate_assessment_meta(quiz, key))

            res = ET.SubElement(
                resources, _tag("resource"),
                identifier=key, type=helper.QTI_PLAIN_TYPE, href=safe_relpath(qti_path, self.export_dir),
            )
            ET.SubElement(res, _tag("file"), href=safe_relpath(qti_path, self.export_dir))
            ET.SubElement(res, _tag("file"), href=safe_relpath(meta_path, self.export_dir))

            self.exporter.add_exported_asset(quiz)
            self.exporter.set_progress(10 + int(40 * i / len(quizzes)))

        self.document = root
        self.log.info("qti manifest built", extra={"quizzes": len(quizzes)})
        return root

    def close(self) -> Path:
        if self.document is None:
            raise ManifestError("close() called before create_document()")
        path = self.export_dir / helper.MANIFEST
        atomic_write(path, prettify_xml(self.document))
        return path


__all__ = ["QtiManifest"]

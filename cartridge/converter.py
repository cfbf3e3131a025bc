# cartridge/converter.py
from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional
from xml.etree import ElementTree as ET

from bs4 import BeautifulSoup

from cartridge import helper
from cartridge.errors import ConversionError
from logging_setup import get_logger
from utils.fs import atomic_write, json_dumps_stable

COURSE_EXPORT_FILE = "course_export.json"


def _local(tag: str) -> str:
    """Strip the {namespace} from an ElementTree tag."""
    return tag.rsplit("}", 1)[-1]


class CourseJsonConverter:
    """
    Turns an unzipped cartridge directory straight into the intermediate
    course_export.json, skipping the zip / store / unzip round trip that
    course copies would otherwise pay for.

    The converter owns base_export_dir (a fresh temp dir); callers are
    responsible for removing it once they are done with the JSON.
    """

    def __init__(
        self,
        unzipped_file_path: Path | str,
        deletions: Optional[Dict[str, List[str]]] = None,
        is_discussion_checkpoints_enabled: bool = False,
    ) -> None:
        self.unzipped_file_path = Path(unzipped_file_path)
        self.deletions = deletions or {}
        self.is_discussion_checkpoints_enabled = is_discussion_checkpoints_enabled
        self.base_export_dir = Path(tempfile.mkdtemp(prefix="cc_converter_"))
        self.course: Dict[str, Any] = {}
        self.log = get_logger(stage="converter", course_id="-")

    def export(self) -> Dict[str, Any]:
        manifest_path = self.unzipped_file_path / helper.MANIFEST
        if not manifest_path.is_file():
            raise ConversionError(f"no {helper.MANIFEST} in {self.unzipped_file_path}")
        try:
            root = ET.parse(manifest_path).getroot()
        except ET.ParseError as e:
            raise ConversionError(f"unreadable manifest: {e}") from e

        resources = [self._convert_resource(res) for res in root.iter() if _local(res.tag) == "resource"]

        self.course = {
            "title": self._manifest_title(root),
            "identifier": root.get("identifier"),
            "schema_version": self._schema_version(root),
            "resources": resources,
            "wiki_pages": [r["content"] for r in resources if r.get("kind") == "page"],
            "external_content": self._load_external_content(),
            "deletions": self.deletions,
            "discussion_checkpoints_enabled": self.is_discussion_checkpoints_enabled,
        }

        out = self.base_export_dir / COURSE_EXPORT_FILE
        atomic_write(out, json_dumps_stable(self.course))
        self.course["full_export_file_path"] = str(out)
        self.log.info("converted cartridge to json", extra={"resources": len(resources), "path": str(out)})
        return self.course

    # --------------------- helpers ---------------------

    def _manifest_title(self, root: ET.Element) -> Optional[str]:
        for el in root.iter():
            if _local(el.tag) == "string" and el.text:
                return el.text.strip()
        return None

    def _schema_version(self, root: ET.Element) -> Optional[str]:
        for el in root.iter():
            if _local(el.tag) == "schemaversion":
                return (el.text or "").strip() or None
        return None

    def _convert_resource(self, res: ET.Element) -> Dict[str, Any]:
        files = [f.get("href") for f in res if _local(f.tag) == "file" and f.get("href")]
        entry: Dict[str, Any] = {
            "identifier": res.get("identifier"),
            "type": res.get("type"),
            "href": res.get("href"),
            "files": files,
        }
        href = res.get("href") or ""
        if href.endswith(".html"):
            entry["kind"] = "page" if href.startswith(helper.WIKI_FOLDER + "/") else "html"
            entry["content"] = self._read_html(href, res.get("identifier"))
        elif href.startswith(helper.WEB_RESOURCES_FOLDER + "/"):
            entry["kind"] = "file"
            path = self.unzipped_file_path / href
            entry["size"] = path.stat().st_size if path.is_file() else None
        elif href.endswith(".qti") or href.endswith(".xml"):
            entry["kind"] = "assessment" if helper.ASSESSMENT_NON_CC_FOLDER in href else "settings"
        else:
            entry["kind"] = "other"
        return entry

    def _read_html(self, href: str, identifier: Optional[str]) -> Dict[str, Any]:
        path = self.unzipped_file_path / href
        if not path.is_file():
            raise ConversionError(f"resource {identifier} points at missing file {href}")
        soup = BeautifulSoup(path.read_text(encoding="utf-8"), "html.parser")
        title = soup.title.get_text(strip=True) if soup.title else None
        body = soup.body.decode_contents().strip() if soup.body else ""
        return {"identifier": identifier, "title": title, "body": body, "href": href}

    def _load_external_content(self) -> Dict[str, Any]:
        folder = self.unzipped_file_path / helper.EXTERNAL_CONTENT_FOLDER
        if not folder.is_dir():
            return {}
        content: Dict[str, Any] = {}
        for path in sorted(folder.glob("*.json")):
            content[path.stem] = json.loads(path.read_text(encoding="utf-8"))
        return content


__all__ = ["CourseJsonConverter", "COURSE_EXPORT_FILE"]

#!/usr/bin/env python3
"""
Common Cartridge export runner.

Usage:
  python scripts/run_export.py --course-json course.json --storage-root exports/ -v
  python scripts/run_export.py --course-json course.json --storage-root exports/ --qti-only
  python scripts/run_export.py --course-json course.json --storage-root exports/ --select quizzes:quiz_7
  python scripts/run_export.py --course-json course.json --storage-root exports/ \
      --new-quizzes-url https://quizzes.example.edu/api --new-quizzes-token $TOKEN

Course JSON:
  {"id": 42, "name": "Intro to Biology",
   "pages": [{"id": 1, "title": "...", "body": "<p>...</p>"}],
   "assignments": [{"id": 3, "title": "...", "description": "...", "points_possible": 10}],
   "quizzes": [{"id": 7, "title": "...", "questions": [{"id": 1, "text": "...", "answers": [...]}]}],
   "files": [{"id": 9, "display_name": "syllabus.pdf", "path": "files/syllabus.pdf", "folder": "Docs"}],
   "settings": {"default_view": "modules"}}
File "path" is relative to the JSON file; "text" may be given instead for inline content.
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# --- ensure repo root on sys.path ---
THIS_FILE = Path(__file__).resolve()
REPO_ROOT = THIS_FILE.parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from cartridge.attachments import AttachmentStore
from cartridge.exporter import CCExporter
from logging_setup import get_logger, setup_logging
from models import Assignment, ContentExport, Course, CourseFile, Quiz, QuizQuestion, User, WikiPage
from utils.config import ExportConfig, load_export_config


def load_course(path: Path) -> Course:
    """Build a Course from the JSON description above."""
    raw: Dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
    base = path.parent

    def _file(f: Dict[str, Any]) -> CourseFile:
        if f.get("path"):
            data = (base / f["path"]).read_bytes()
        else:
            data = str(f.get("text", "")).encode("utf-8")
        return CourseFile(
            id=int(f["id"]),
            display_name=f.get("display_name") or Path(f.get("path") or f"file-{f['id']}").name,
            data=data,
            content_type=f.get("content_type"),
            folder=f.get("folder") or "",
        )

    return Course(
        id=int(raw["id"]),
        name=raw.get("name") or f"Course {raw['id']}",
        pages=[WikiPage(id=int(p["id"]), title=p.get("title", ""), body=p.get("body", ""), url=p.get("url"))
               for p in raw.get("pages", [])],
        assignments=[
            Assignment(
                id=int(a["id"]),
                title=a.get("title", ""),
                description=a.get("description", ""),
                points_possible=a.get("points_possible"),
            )
            for a in raw.get("assignments", [])
        ],
        quizzes=[
            Quiz(
                id=int(q["id"]),
                title=q.get("title", ""),
                description=q.get("description", ""),
                questions=[
                    QuizQuestion(
                        id=int(qq["id"]),
                        text=qq.get("text", ""),
                        type=qq.get("type", "multiple_choice_question"),
                        points=float(qq.get("points", 1)),
                        answers=list(qq.get("answers", [])),
                    )
                    for qq in q.get("questions", [])
                ],
            )
            for q in raw.get("quizzes", [])
        ],
        files=[_file(f) for f in raw.get("files", [])],
        settings=dict(raw.get("settings", {})),
        discussion_checkpoints_enabled=bool(raw.get("discussion_checkpoints_enabled", False)),
    )


def parse_selection(items: Optional[List[str]]) -> Dict[str, Any]:
    """["quizzes:quiz_7", "all_wiki_pages"] -> {"quizzes": {"quiz_7"}, "all_wiki_pages": True}"""
    selected: Dict[str, Any] = {}
    for item in items or ():
        if ":" in item:
            asset_type, asset = item.split(":", 1)
            selected.setdefault(asset_type, set()).add(asset)
        else:
            selected[item] = True
    return selected


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Run a Common Cartridge course export")
    p.add_argument("--course-json", type=Path, required=True, help="Course description (JSON)")
    p.add_argument("--storage-root", type=Path, required=True, help="Where stored export attachments land")
    p.add_argument("--export-id", type=int, default=1)
    p.add_argument("--user-id", type=int, default=None, help="Exporting user id (adds _user_<id> to the working dir)")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--qti-only", action="store_true", help="Quizzes only, as a QTI zip")
    mode.add_argument("--master-migration", action="store_true", help="Blueprint sync: emit course JSON, no zip")
    mode.add_argument("--course-template", action="store_true", help="Course template: emit course JSON, no zip")
    p.add_argument("--select", nargs="+", default=None, help="Selective export: TYPE:ASSET or all_TYPE flags")
    p.add_argument("--cc-version", default=None, choices=["1.1.0", "1.3.0"])
    p.add_argument("--data-folder", type=Path, default=None, help="Root for working dirs (default: env or system temp)")
    p.add_argument("--keep", action="store_true", help="Keep working dirs after the run")
    p.add_argument("--new-quizzes-url", default=None, help="Quiz engine export API; its content lands in external_content/")
    p.add_argument("--new-quizzes-token", default=None, help="Bearer token for --new-quizzes-url (default: env)")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v, -vv)")
    args = p.parse_args(argv)

    setup_logging(verbosity=min(args.verbose, 2))

    course = load_course(args.course_json)
    log = get_logger(stage="runner", course_id=course.id)

    env_config = load_export_config()
    config = ExportConfig(
        data_folder=args.data_folder or env_config.data_folder,
        keep_after_complete=args.keep or env_config.keep_after_complete,
        new_quizzes_token=args.new_quizzes_token or env_config.new_quizzes_token,
    )

    settings: Dict[str, Any] = {}
    if args.new_quizzes_url:
        settings = {"include_new_quizzes": True, "new_quizzes_export_url": args.new_quizzes_url}
        if not config.new_quizzes_token:
            log.warning("--new-quizzes-url given without a token; quiz engine content is skipped")

    if args.qti_only:
        export_type = "qti"
    elif args.master_migration:
        export_type = "master_course_copy"
    elif args.course_template:
        export_type = "course_template"
    else:
        export_type = "common_cartridge"

    content_export = ContentExport(
        id=args.export_id,
        course=course,
        user=User(id=args.user_id) if args.user_id is not None else None,
        export_type=export_type,
        selected_content=parse_selection(args.select),
        settings=settings,
    )

    ok = CCExporter.export(
        content_export,
        config=config,
        version=args.cc_version,
        storage=AttachmentStore(args.storage_root),
    )
    if not ok:
        for message, detail in content_export.error_messages:
            log.error("✗ %s", message, extra={"detail": detail})
        return 2

    att = content_export.attachment
    log.info("✓ export stored", extra={"path": str(att.storage_path) if att else None})
    if att is not None:
        print(att.storage_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

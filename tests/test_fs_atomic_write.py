# tests/test_fs_atomic_write.py
from __future__ import annotations

from pathlib import Path

from utils.fs import atomic_write, ensure_dir


def test_atomic_write_text_and_bytes(tmp_path: Path):
    manifest = tmp_path / "imsmanifest.xml"
    atomic_write(manifest, "<manifest>é</manifest>")
    assert manifest.read_text(encoding="utf-8") == "<manifest>é</manifest>"

    blob = tmp_path / "web_resources" / "image.bin"
    atomic_write(blob, b"\x00\x01\x02\xff")
    assert blob.read_bytes() == b"\x00\x01\x02\xff"


def test_atomic_write_replaces_content(tmp_path: Path):
    p = tmp_path / "external_content" / "tool.json"
    atomic_write(p, '{"v":1}')
    atomic_write(p, '{"v":2}')
    assert p.read_text(encoding="utf-8") == '{"v":2}'


def test_atomic_write_no_temp_leftovers(tmp_path: Path):
    d = tmp_path / "isolated"
    ensure_dir(d)
    target = d / "course_settings.xml"

    atomic_write(target, "one")
    atomic_write(target, "two")

    assert [p.name for p in d.iterdir()] == ["course_settings.xml"]

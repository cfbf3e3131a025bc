# tests/test_fs_helpers.py
import json

from utils.fs import file_hashes, iter_files, json_dumps_stable, remove_tree, safe_relpath


def test_json_dumps_stable_deterministic():
    data = {"b": 1, "a": {"é": 2}}
    dumped = json_dumps_stable(data)
    assert dumped == json_dumps_stable(data)
    assert dumped.endswith("\n")
    assert dumped.index('"a"') < dumped.index('"b"')
    assert "é" in dumped  # not \u-escaped
    assert json.loads(dumped) == data


def test_safe_relpath_is_posix(tmp_path):
    f = tmp_path / "external_content" / "quizzes2.json"
    f.parent.mkdir()
    f.write_text("{}")
    assert safe_relpath(f, tmp_path) == "external_content/quizzes2.json"


def test_iter_files_sorted_and_files_only(tmp_path):
    (tmp_path / "b").mkdir()
    (tmp_path / "b" / "z.txt").write_text("z")
    (tmp_path / "a.txt").write_text("a")
    (tmp_path / "empty").mkdir()

    assert [safe_relpath(p, tmp_path) for p in iter_files(tmp_path)] == ["a.txt", "b/z.txt"]


def test_remove_tree(tmp_path):
    d = tmp_path / "common_cartridge_42"
    (d / "nested").mkdir(parents=True)
    (d / "nested" / "f").write_text("x")

    assert remove_tree(d) is True
    assert not d.exists()
    assert remove_tree(d) is False


def test_file_hashes_known_values(tmp_path):
    f = tmp_path / "sample.txt"
    f.write_text("hello world\n", encoding="utf-8")

    hashes = file_hashes(f)
    assert hashes["sha256"] == "a948904f2f0f479b8f8197694b30184b0d2ed1c1cd2a1ec0fb85d299a192a447"
    assert hashes["md5"] == "6f5902ac237024bdd0c176cb93063dc4"

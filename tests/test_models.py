# tests/test_models.py
from __future__ import annotations

from datetime import datetime, timedelta

from cartridge.helper import create_key
from models import ContentExport, WikiPage


def test_export_type_predicates(course):
    assert ContentExport(id=1, course=course).common_cartridge()
    assert ContentExport(id=1, course=course, export_type="qti").qti_export()
    master = ContentExport(id=1, course=course, export_type="master_course_copy")
    assert master.for_master_migration() and master.for_course_copy()
    assert ContentExport(id=1, course=course, export_type="course_copy").for_course_copy()
    assert ContentExport(id=1, course=course, export_type="course_template").for_course_template()
    assert ContentExport(id=1, course=course).context is course


def test_selective_export(course):
    assert not ContentExport(id=1, course=course).selective_export()
    assert not ContentExport(id=1, course=course, selected_content={"everything": True}).selective_export()
    assert ContentExport(id=1, course=course, selected_content={"all_quizzes": True}).selective_export()


def test_export_object_respects_selection(course):
    page1, page2 = course.pages
    ce = ContentExport(id=1, course=course, selected_content={"wiki_pages": {"wiki_page_2"}})
    assert ce.export_object(page1) is False
    assert ce.export_object(page2) is True
    assert ce.export_object(course.quizzes[0]) is False
    assert ce.export_object(None) is False

    everything = ContentExport(id=1, course=course, selected_content={"all_quizzes": True})
    assert everything.export_object(course.quizzes[0]) is True
    assert everything.export_object(course.quizzes[0], asset_type="wiki_pages") is False


def test_export_object_since_filter(course):
    now = datetime(2026, 1, 10)
    old = WikiPage(id=20, title="Old", updated_at=now - timedelta(days=3))
    new = WikiPage(id=21, title="New", updated_at=now + timedelta(days=1))
    ce = ContentExport(id=1, course=course, since=now)

    assert ce.export_object(old) is False
    assert ce.export_object(old, ignore_updated_at=True) is True
    assert ce.export_object(new) is True
    assert ce.export_object(course.pages[0]) is True  # no timestamp -> exported


def test_export_symbol(course):
    assert ContentExport(id=1, course=course).export_symbol("all_course_settings")
    selective = ContentExport(id=1, course=course, selected_content={"wiki_pages": {"wiki_page_1"}})
    assert not selective.export_symbol("all_course_settings")
    selective.selected_content["all_course_settings"] = True
    assert selective.export_symbol("all_course_settings")


def test_progress_is_clamped_and_monotonic(course):
    ce = ContentExport(id=1, course=course)
    ce.fast_update_progress(40)
    ce.fast_update_progress(20)
    assert ce.progress == 40
    ce.fast_update_progress(250)
    assert ce.progress == 100


def test_add_error_keeps_message_and_detail(course):
    ce = ContentExport(id=1, course=course)
    ce.add_error("Error running course export.", ValueError("bad zip"))
    ce.add_error("plain")
    assert ce.error_messages == [
        ("Error running course export.", "ValueError: bad zip"),
        ("plain", None),
    ]


def test_exported_assets_are_an_ordered_set(course):
    ce = ContentExport(id=1, course=course)
    ce.add_exported_asset(course.pages[1])
    ce.add_exported_asset(course.pages[0])
    ce.add_exported_asset(course.pages[1])
    assert list(ce.exported_assets) == ["wiki_page_2", "wiki_page_1"]
    assert ce.exported_asset_strings == {"wiki_page_1", "wiki_page_2"}


def test_create_key_is_stable_and_memoized(course):
    ce = ContentExport(id=1, course=course)
    page = course.pages[0]
    key = ce.create_key(page)
    assert key == ce.create_key("wiki_page_1") == create_key(page)
    assert key.startswith("g") and len(key) == 33
    assert ce.create_key(page, "prefix_") != key


def test_add_item_to_export_and_save(course):
    ce = ContentExport(id=1, course=course)
    ce.add_item_to_export(course.quizzes[0])
    assert ce.items_to_export == ["quiz_7"]
    assert ce.save() is True and ce.save_count == 1

from utils.strings import sanitize_slug, truncate_text


def test_course_name_to_slug():
    assert sanitize_slug("Intro to Biology") == "intro-to-biology"


def test_collapse_and_trim():
    assert sanitize_slug("  --Hello__World!!  ") == "hello-world"


def test_unicode_accents_removed():
    assert sanitize_slug("Écologie – résumé") == "ecologie-resume"


def test_only_bad_chars_results_empty():
    assert sanitize_slug("$$$") == ""
    assert sanitize_slug("") == ""


def test_truncate_short_text_untouched():
    assert truncate_text("intro-to-biology", 200, ellipsis="") == "intro-to-biology"


def test_truncate_breaks_on_word_boundary():
    assert truncate_text("intro-to-biology", 12, ellipsis="") == "intro-to"
    assert truncate_text("intro to biology", 12) == "intro to..."


def test_truncate_hard_cut_without_boundary():
    assert truncate_text("a" * 30, 10, ellipsis="") == "a" * 10


def test_truncate_none():
    assert truncate_text(None, 5) == ""

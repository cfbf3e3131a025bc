# cartridge/qti.py
"""QTI 1.2 assessment documents for quizzes (shared by the full and QTI-only manifests)."""
from __future__ import annotations

import html
from typing import Any, Dict
from xml.dom import minidom
from xml.etree import ElementTree as ET

from cartridge.helper import QTI_NAMESPACE
from models import Quiz, QuizQuestion

CHOICE_TYPES = {"multiple_choice_question", "true_false_question", "multiple_answers_question"}
TEXT_TYPES = {"short_answer_question"}


def prettify_xml(elem: ET.Element) -> str:
    """Pretty-printed XML string with declaration."""
    rough = ET.tostring(elem, encoding="unicode")
    return minidom.parseString(rough).toprettyxml(indent="  ", encoding="UTF-8").decode("utf-8")


def add_text_element(parent: ET.Element, tag: str, text: str, **attribs: str) -> ET.Element:
    elem = ET.SubElement(parent, tag, **attribs)
    elem.text = text
    return elem


def generate_qti_assessment(quiz: Quiz, ident: str) -> str:
    """QTI 1.2 <questestinterop> document for one quiz."""
    root = ET.Element("questestinterop", xmlns=QTI_NAMESPACE)
    assessment = ET.SubElement(root, "assessment", ident=ident, title=quiz.title)

    qtimetadata = ET.SubElement(assessment, "qtimetadata")
    _add_metadata(qtimetadata, "cc_profile", "cc.exam.v0p1")
    _add_metadata(qtimetadata, "qmd_assessmenttype", "Examination")
    _add_metadata(qtimetadata, "cc_maxattempts", "1")

    if quiz.description:
        rubric = ET.SubElement(assessment, "rubric")
        material = ET.SubElement(rubric, "material")
        add_text_element(material, "mattext", quiz.description, texttype="text/html")

    section = ET.SubElement(assessment, "section", ident="root_section")
    for question in quiz.questions:
        _add_item(section, question, ident)

    return prettify_xml(root)


def generate_assessment_meta(quiz: Quiz, ident: str) -> str:
    """Canvas-flavoured quiz settings sidecar (title, description, points)."""
    root = ET.Element("quiz", identifier=ident)
    add_text_element(root, "title", quiz.title)
    add_text_element(root, "description", quiz.description or "")
    add_text_element(root, "question_count", str(len(quiz.questions)))
    add_text_element(root, "points_possible", _fmt_points(sum(q.points for q in quiz.questions)))
    return prettify_xml(root)


def _add_metadata(parent: ET.Element, label: str, entry: str) -> None:
    field = ET.SubElement(parent, "qtimetadatafield")
    add_text_element(field, "fieldlabel", label)
    add_text_element(field, "fieldentry", entry)


def _add_item(section: ET.Element, question: QuizQuestion, quiz_ident: str) -> None:
    item = ET.SubElement(section, "item", ident=f"{quiz_ident}_q{question.id}", title="Question")

    itemmetadata = ET.SubElement(item, "itemmetadata")
    qtimetadata = ET.SubElement(itemmetadata, "qtimetadata")
    _add_metadata(qtimetadata, "question_type", question.type)
    _add_metadata(qtimetadata, "points_possible", _fmt_points(question.points))

    presentation = ET.SubElement(item, "presentation")
    material = ET.SubElement(presentation, "material")
    add_text_element(material, "mattext", f"<div>{html.escape(question.text)}</div>", texttype="text/html")

    if question.type in CHOICE_TYPES:
        _add_choice_response(presentation, item, question)
    elif question.type in TEXT_TYPES:
        _add_text_response(presentation, item, question)
    else:
        # essay and anything ungraded: free text, no scoring conditions
        response_str = ET.SubElement(presentation, "response_str", ident="response1", rcardinality="Single")
        ET.SubElement(response_str, "render_fib", fibtype="String", rows="15", columns="60")


def _add_choice_response(presentation: ET.Element, item: ET.Element, question: QuizQuestion) -> None:
    cardinality = "Multiple" if question.type == "multiple_answers_question" else "Single"
    response_lid = ET.SubElement(presentation, "response_lid", ident="response1", rcardinality=cardinality)
    render_choice = ET.SubElement(response_lid, "render_choice")

    for i, answer in enumerate(question.answers):
        label = ET.SubElement(render_choice, "response_label", ident=_answer_ident(question, i, answer))
        material = ET.SubElement(label, "material")
        add_text_element(material, "mattext", str(answer.get("text", "")), texttype="text/plain")

    resprocessing = _add_score_outcome(item)
    for i, answer in enumerate(question.answers):
        if _is_correct(answer):
            _add_condition(resprocessing, _answer_ident(question, i, answer))


def _add_text_response(presentation: ET.Element, item: ET.Element, question: QuizQuestion) -> None:
    response_str = ET.SubElement(presentation, "response_str", ident="response1", rcardinality="Single")
    render_fib = ET.SubElement(response_str, "render_fib")
    ET.SubElement(render_fib, "response_label", ident="answer1", rshuffle="No")

    resprocessing = _add_score_outcome(item)
    for answer in question.answers:
        if _is_correct(answer):
            _add_condition(resprocessing, str(answer.get("text", "")))


def _add_score_outcome(item: ET.Element) -> ET.Element:
    resprocessing = ET.SubElement(item, "resprocessing")
    outcomes = ET.SubElement(resprocessing, "outcomes")
    ET.SubElement(outcomes, "decvar", maxvalue="100", minvalue="0", varname="SCORE", vartype="Decimal")
    return resprocessing


def _add_condition(resprocessing: ET.Element, value: str) -> None:
    respcondition = ET.SubElement(resprocessing, "respcondition", **{"continue": "No"})
    conditionvar = ET.SubElement(respcondition, "conditionvar")
    add_text_element(conditionvar, "varequal", value, respident="response1")
    add_text_element(respcondition, "setvar", "100", action="Set", varname="SCORE")


def _answer_ident(question: QuizQuestion, index: int, answer: Dict[str, Any]) -> str:
    return str(answer.get("id") or f"{question.id}_{index}")


def _is_correct(answer: Dict[str, Any]) -> bool:
    if answer.get("correct"):
        return True
    try:
        return float(answer.get("weight") or 0) >= 100
    except (TypeError, ValueError):
        return False


def _fmt_points(points: float) -> str:
    return f"{points:g}"

from __future__ import annotations

from classroom_quiz.core.markdown_renderer import EMPTY_QUESTION_HTML, QuestionRenderer
from classroom_quiz.core.models import Option, Question


def test_question_and_options_render_separately():
    question = Question(
        id=1,
        text="Solve $x^2 = 4$ for **positive** x.",
        options=[Option(id=0, text="*2*", is_correct=True), Option(id=1, text="-2")],
    )

    rendered = QuestionRenderer().render_question(question)

    assert rendered.question_html.startswith("<p>")
    assert "<strong>positive</strong>" in rendered.question_html
    assert "$x^2 = 4$" in rendered.question_html
    assert rendered.option_html == ("<em>2</em>", "-2")


def test_blank_text_gets_placeholder():
    assert QuestionRenderer().render_block("   ") == EMPTY_QUESTION_HTML


def test_raw_html_is_escaped_by_default():
    html = QuestionRenderer().render_block("<script>alert(1)</script>")
    assert "<script>" not in html

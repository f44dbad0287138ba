"""Markdown rendering for the question text sent to students.

Math stays as ``$...$`` source; the portal page typesets it with MathJax.
"""

from __future__ import annotations

from dataclasses import dataclass

from markdown_it import MarkdownIt

from classroom_quiz.core.models import Question

EMPTY_QUESTION_HTML = "<p><em>No content provided.</em></p>"


@dataclass(slots=True, frozen=True)
class RenderedQuestion:
    question_html: str
    option_html: tuple[str, ...]


class QuestionRenderer:
    """Turns a question's markdown into HTML fragments, one per option."""

    def __init__(self, allow_html: bool = False) -> None:
        # Raw HTML in authored text is escaped unless explicitly allowed.
        self._markdown = MarkdownIt("commonmark", {"html": allow_html}).enable(
            ["table", "strikethrough"]
        )

    def render_question(self, question: Question) -> RenderedQuestion:
        return RenderedQuestion(
            question_html=self.render_block(question.text),
            option_html=tuple(self.render_inline(option.text) for option in question.options),
        )

    def render_block(self, markdown_text: str) -> str:
        text = markdown_text.strip()
        if not text:
            return EMPTY_QUESTION_HTML
        return self._markdown.render(text)

    def render_inline(self, markdown_text: str) -> str:
        """Option labels render without a wrapping paragraph."""
        return self._markdown.renderInline(markdown_text.strip())


renderer = QuestionRenderer()

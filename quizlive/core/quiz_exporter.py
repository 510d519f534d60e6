"""Utilities for exporting quizzes to the plain-text format used for imports."""

from __future__ import annotations

from quizlive.constants.quiz_constants import DEFAULT_QUESTION_POINTS, OPTION_LETTERS
from quizlive.core.models import Question


def export_quiz_text(questions: list[Question]) -> str:
    """Serialize the questions, in order, to the text import format."""
    if not questions:
        raise ValueError("Cannot export an empty quiz.")
    blocks = [_serialize_question(question) for question in questions]
    return "\n\n---\n\n".join(blocks) + "\n"


def _serialize_question(question: Question) -> str:
    lines: list[str] = []

    question_lines = question.question_text.splitlines() or [question.question_text]
    lines.append(f"Q: {question_lines[0]}")
    lines.extend(question_lines[1:])

    for idx, letter in enumerate(OPTION_LETTERS):
        option_text = question.options[idx] if idx < len(question.options) else ""
        option_lines = option_text.splitlines() or [option_text]
        lines.append(f"{letter}: {option_lines[0]}")
        lines.extend(option_lines[1:])

    lines.append(f"CORRECT: {OPTION_LETTERS[question.correct_option_index]}")
    lines.append(f"TIMELIMIT: {question.time_limit_seconds}")
    if question.points != DEFAULT_QUESTION_POINTS:
        lines.append(f"POINTS: {question.points}")
    if question.explanation:
        explanation_lines = question.explanation.splitlines()
        lines.append(f"EXPLANATION: {explanation_lines[0]}")
        lines.extend(explanation_lines[1:])

    return "\n".join(lines)

"""Utilities for importing quizzes from a human-friendly text format.

Format (each block starts at a 'Q:' line or after a '---' line):

    Q: Question text (supports markdown + LaTeX). Additional lines until the
       next marker are treated as part of the question. Blank lines inside
       question, option or explanation text are kept as paragraph breaks.
    A: First option text
    B: Second option text
    C: Third option text
    D: Fourth option text
    CORRECT: A|B|C|D
    TIMELIMIT: seconds (optional, defaults to 30)
    POINTS: integer (optional, defaults to 1)
    EXPLANATION: text shown after answering (optional)

Example:

    Q: What is $2 + 2$?
    A: 3
    B: 4
    C: 5
    D: 22
    CORRECT: B
    TIMELIMIT: 30
"""

from __future__ import annotations

from quizlive.constants.quiz_constants import (
    DEFAULT_QUESTION_POINTS,
    DEFAULT_TIME_LIMIT_SECONDS,
    OPTION_COUNT,
    OPTION_LETTERS,
)
from quizlive.core.errors import QuizValidationError
from quizlive.core.services.quiz_repository import QuestionDraft


class QuizImportError(QuizValidationError):
    """Raised when a quiz definition cannot be parsed."""


def parse_quiz_text(text: str) -> list[QuestionDraft]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        starts_question = stripped.upper().startswith("Q:")
        if stripped == "---" or (starts_question and current_block):
            block = "\n".join(current_block).strip()
            if block:
                blocks.append(block)
            current_block = []
            if stripped == "---":
                continue
        if stripped or current_block:
            current_block.append(raw_line)
    if current_block:
        blocks.append("\n".join(current_block).strip())

    drafts = [_parse_block(block, position) for position, block in enumerate(blocks, start=1) if block]
    if not drafts:
        raise QuizImportError("Quiz text did not contain any questions.")
    return drafts


def _parse_block(block: str, position: int) -> QuestionDraft:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    time_limit_seconds = DEFAULT_TIME_LIMIT_SECONDS
    points = DEFAULT_QUESTION_POINTS
    explanation_lines: list[str] = []
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            if current_section == "Q":
                question_lines.append("")
            elif current_section == "EXPLANATION":
                explanation_lines.append("")
            elif current_section in OPTION_LETTERS:
                options[current_section] += "\n"
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("TIMELIMIT:"):
            time_limit_seconds = _parse_int(line, "TIMELIMIT", position)
            current_section = None
            continue

        if upper.startswith("POINTS:"):
            points = _parse_int(line, "POINTS", position)
            current_section = None
            continue

        if upper.startswith("EXPLANATION:"):
            explanation_lines = [line.split(":", 1)[1].strip()]
            current_section = "EXPLANATION"
            continue

        if len(line) > 2 and line[0].upper() in OPTION_LETTERS and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section == "EXPLANATION":
            explanation_lines.append(line)
        elif current_section in OPTION_LETTERS:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizImportError(
                f"Question {position}: encountered text outside of a known section: '{line}'."
            )

    if not question_lines:
        raise QuizImportError(f"Question {position}: question text missing (Q: ...)")
    if len(options) != OPTION_COUNT:
        raise QuizImportError(f"Question {position}: define exactly four options (A-D).")
    if correct_letter is None:
        raise QuizImportError(f"Question {position}: CORRECT is required.")
    if correct_letter not in OPTION_LETTERS:
        raise QuizImportError(f"Question {position}: CORRECT must be one of A, B, C, or D.")

    return QuestionDraft(
        question_text="\n".join(question_lines).strip(),
        options=[options[letter].strip() for letter in OPTION_LETTERS],
        correct_option_index=OPTION_LETTERS.index(correct_letter),
        time_limit_seconds=time_limit_seconds,
        points=points,
        explanation="\n".join(explanation_lines).strip() or None,
    )


def _parse_int(line: str, label: str, position: int) -> int:
    raw_value = line.split(":", 1)[1].strip()
    if not raw_value:
        raise QuizImportError(f"Question {position}: {label} must include an integer value.")
    try:
        return int(raw_value)
    except ValueError as exc:
        raise QuizImportError(f"Question {position}: {label} must be an integer.") from exc

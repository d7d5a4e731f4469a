"""
quiz/csv_import.py — Bulk question import from CSV.

Expected header (any order, extra columns ignored):

  type,text,option_a,option_b,option_c,option_d,correct,points,time_s,media,mode,notes,explanation

`question`, `image`, `time` and `correct_answer` are accepted as aliases.
For qcm/image questions `correct` is a 0-based index or a letter (A-D);
for closest questions it is a number.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Optional, get_args

from .models import QuizMode, new_id

log = logging.getLogger(__name__)

OPTION_COLUMNS = ("option_a", "option_b", "option_c", "option_d")
CHOICE_TYPES = ("qcm", "image")


def parse_csv(text: str) -> list[dict[str, str]]:
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if len(lines) < 2:
        raise ValueError("CSV file must have at least a header row and one data row")

    reader = csv.reader(io.StringIO("\n".join(lines)), skipinitialspace=True)
    headers = [h.strip() for h in next(reader)]
    rows = []
    for line_no, values in enumerate(reader, start=2):
        if len(values) != len(headers):
            raise ValueError(f"Row {line_no}: expected {len(headers)} columns, got {len(values)}")
        rows.append({h: v.strip() for h, v in zip(headers, values)})
    return rows


def _int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value else default
    except ValueError:
        return default


def _correct_index(value: str, option_count: int) -> Optional[int]:
    try:
        index = int(value)
    except ValueError:
        index = ord(value[0].upper()) - ord("A")
    return index if 0 <= index < option_count else None


def row_to_question(row: dict[str, str]) -> dict:
    qtype = (row.get("type") or "qcm").lower()
    question: dict = {
        "id": new_id(),
        "type": qtype,
        "text": row.get("text") or row.get("question") or "",
        "points": _int(row.get("points"), 1),
        "time_s": _int(row.get("time_s") or row.get("time"), 20),
    }
    if row.get("notes"):
        question["notes"] = row["notes"]
    if row.get("explanation"):
        question["explanation"] = row["explanation"]
    if row.get("media") or row.get("image"):
        question["media"] = row.get("media") or row.get("image")

    correct = row.get("correct") or row.get("correct_answer")

    if qtype in CHOICE_TYPES:
        options = [row[c] for c in OPTION_COLUMNS if row.get(c)]
        if not options:
            raise ValueError(f'Choice question must have at least one option: "{question["text"]}"')
        question["options"] = options
        if correct:
            index = _correct_index(correct, len(options))
            if index is not None:
                question["correct"] = index

    if qtype == "closest" and correct:
        try:
            question["correct"] = float(correct)
        except ValueError:
            raise ValueError(f'Closest question needs a numeric answer: "{question["text"]}"') from None

    if row.get("mode") in get_args(QuizMode):
        question["mode"] = row["mode"]

    return question


def csv_to_questions(rows: list[dict[str, str]]) -> list[dict]:
    return [row_to_question(row) for row in rows]


def validate_question(q: dict) -> list[str]:
    errors = []
    if not (q.get("text") or "").strip():
        errors.append("Question text is required")
    if not q.get("type"):
        errors.append("Question type is required")
    if q.get("type") in CHOICE_TYPES:
        if not q.get("options"):
            errors.append("Choice questions must have at least one option")
        if q.get("correct") is None:
            errors.append("Choice questions must specify a correct answer")
        elif isinstance(q["correct"], int) and not 0 <= q["correct"] < len(q.get("options") or []):
            errors.append(f"Correct answer {q['correct']} is not one of the {len(q.get('options') or [])} options")
    if q.get("type") == "closest" and q.get("correct") is None:
        errors.append("Closest questions must specify a correct answer")
    return errors


def import_csv(text: str) -> tuple[list[dict], list[str]]:
    """Parse and validate. Returns (valid questions, error messages)."""
    questions, errors = [], []
    for idx, q in enumerate(csv_to_questions(parse_csv(text)), start=1):
        problems = validate_question(q)
        if problems:
            errors.extend(f"Question {idx}: {p}" for p in problems)
        else:
            questions.append(q)
    if errors:
        log.warning(f"CSV import: {len(errors)} problem(s) found")
    return questions, errors

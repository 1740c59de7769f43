import csv
import io
from typing import Iterable

from beton_feedback.catalog import QUESTIONS
from beton_feedback.report import format_answer, has_answer

# Spreadsheet tools only detect UTF-8 (and so Cyrillic text) with a BOM.
CSV_BOM = "\ufeff"

EVALUATION_COLUMNS = [
    "id",
    "username",
    "phone",
    "productName",
    "overallRating",
    *[question.response_key for question in QUESTIONS],
    "createdAt",
]

USER_COLUMNS = ["id", "username", "phone", "isAdmin", "evaluationsCount", "createdAt"]


def _write_csv(columns: list[str], rows: Iterable[dict]) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=columns, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return CSV_BOM + output.getvalue()


def evaluations_csv(evaluations) -> str:
    rows = []
    for evaluation in evaluations:
        responses = evaluation.responses or {}
        row = {
            "id": evaluation.id,
            "username": evaluation.user.username if evaluation.user else "",
            "phone": evaluation.user.phone if evaluation.user else "",
            "productName": evaluation.product_name,
            "overallRating": evaluation.overall_rating,
            "createdAt": evaluation.created_at.isoformat() if evaluation.created_at else "",
        }
        for question in QUESTIONS:
            answer = responses.get(question.response_key)
            row[question.response_key] = format_answer(answer) if has_answer(answer) else ""
        rows.append(row)
    return _write_csv(EVALUATION_COLUMNS, rows)


def users_csv(users) -> str:
    return _write_csv(
        USER_COLUMNS,
        (
            {
                "id": user.id,
                "username": user.username,
                "phone": user.phone,
                "isAdmin": "yes" if user.is_admin else "no",
                "evaluationsCount": len(user.evaluations),
                "createdAt": user.created_at.isoformat() if user.created_at else "",
            }
            for user in users
        ),
    )

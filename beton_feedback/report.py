"""Plain-text evaluation reports.

``render_report`` is a pure function of its input: the preview returned right
after submission and the report downloaded later from the admin panel are
built from the same stored fields and are therefore byte-identical.
"""

from datetime import datetime, timezone
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from beton_feedback.catalog import QUESTIONS, Question
from beton_feedback.core import config

REPORT_TITLE = "ОТЧЕТ ПО ОЦЕНКЕ ПРОДУКЦИИ БЕТОН-30"
REPORT_FOOTER = (
    "Спасибо за оценку!\n"
    "Компания БЕТОН-30 - ваш надежный партнер\n"
    "Сайт: https://www.beton-30.ru/\n"
)


class ReportUser(BaseModel):
    username: str
    phone: str


class ReportData(BaseModel):
    user: ReportUser
    product: str
    evaluation: dict[str, Any]
    overall_rating: int
    date: datetime


def _resolve_zone(tz_name: str):
    if tz_name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(tz_name)


def format_report_date(value: datetime, tz_name: str | None = None) -> str:
    # Naive timestamps come back from SQLite and are stored as UTC.
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    zone = _resolve_zone(tz_name or config.REPORT_TIMEZONE)
    return value.astimezone(zone).strftime("%d.%m.%Y, %H:%M:%S")


def format_answer(answer: Any) -> str:
    if isinstance(answer, (list, tuple)):
        return ",".join(str(item) for item in answer)
    return str(answer)


def has_answer(answer: Any) -> bool:
    return answer is not None and answer != ""


def render_report(
    data: ReportData,
    questions: Iterable[Question] = QUESTIONS,
    tz_name: str | None = None,
) -> str:
    lines = [
        REPORT_TITLE,
        "=" * 40,
        "",
        f"Пользователь: {data.user.username}",
        f"Телефон: {data.user.phone}",
        f"Продукт: {data.product}",
        f"Дата оценки: {format_report_date(data.date, tz_name)}",
        f"Общая оценка: {data.overall_rating}/5",
        "",
        "ОТВЕТЫ НА ВОПРОСЫ:",
        "=" * 18,
        "",
    ]
    report = "\n".join(lines) + "\n"

    for index, question in enumerate(questions, start=1):
        answer = data.evaluation.get(question.response_key)
        if not has_answer(answer):
            continue
        report += f"{index}. {question.question}\n"
        report += f"   Ответ: {format_answer(answer)}\n\n"

    return report + "\n" + REPORT_FOOTER


def report_data_for(evaluation) -> ReportData:
    """Build report input from a stored ``Evaluation`` and its user."""
    return ReportData(
        user=ReportUser(username=evaluation.user.username, phone=evaluation.user.phone),
        product=evaluation.product_name,
        evaluation=evaluation.responses or {},
        overall_rating=evaluation.overall_rating,
        date=evaluation.created_at,
    )

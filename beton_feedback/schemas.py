"""Response payloads shared by the public and admin routes.

JSON keys are camelCase on the wire; attributes stay snake_case in Python.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from beton_feedback.audit import AdminLogEntry
from beton_feedback.catalog import Question


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def is_present(value: Any) -> bool:
    """Presence check for required request fields; blanks and zero count as missing."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0
    return True


class UserOut(CamelModel):
    id: int
    username: str
    phone: str
    is_admin: bool
    created_at: datetime


class UserSummary(UserOut):
    evaluations_count: int = 0


class EvaluationUser(CamelModel):
    username: str
    phone: str


class EvaluationOut(CamelModel):
    id: int
    user_id: int
    product_name: str
    responses: dict[str, Any]
    overall_rating: int
    created_at: datetime
    user: EvaluationUser | None = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class AuthResponse(CamelModel):
    success: bool = True
    user_id: int
    message: str


class ProductsResponse(CamelModel):
    success: bool = True
    products: list[str]


class QuestionsResponse(CamelModel):
    success: bool = True
    questions: list[Question]


class EvaluationSubmitResponse(CamelModel):
    success: bool = True
    evaluation_id: int
    report_data: str


class CheckAdminResponse(CamelModel):
    success: bool
    is_admin: bool
    user_id: int | None = None
    username: str | None = None
    error: str | None = None


class UserResponse(CamelModel):
    success: bool = True
    message: str
    user: UserOut


class UsersResponse(CamelModel):
    success: bool = True
    users: list[UserSummary]


class UserDetailResponse(CamelModel):
    success: bool = True
    user: UserSummary
    evaluations: list[EvaluationOut]


class EvaluationsResponse(CamelModel):
    success: bool = True
    evaluations: list[EvaluationOut]


class ProductStat(CamelModel):
    product_name: str
    count: int
    average_rating: float


class StatisticsResponse(CamelModel):
    success: bool = True
    users_count: int
    eval_count: int
    admins_count: int
    products_stats: list[ProductStat]


class LogsResponse(CamelModel):
    success: bool = True
    logs: list[AdminLogEntry]


def user_summary(user) -> UserSummary:
    return UserSummary(
        id=user.id,
        username=user.username,
        phone=user.phone,
        is_admin=bool(user.is_admin),
        created_at=user.created_at,
        evaluations_count=len(user.evaluations),
    )

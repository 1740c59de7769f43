from threading import Lock
from typing import Literal

from pydantic import BaseModel, ConfigDict

from beton_feedback.core.errors import Conflict, NotFound, ValidationError

RATING_OPTIONS = [1, 2, 3, 4, 5]


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    question: str
    type: Literal["rating", "choice", "text"]
    options: list[int | str]

    @property
    def response_key(self) -> str:
        return f"question_{self.id}"


QUESTIONS: tuple[Question, ...] = (
    Question(
        id=1,
        question="Как вы оцениваете качество продукции?",
        type="rating",
        options=RATING_OPTIONS,
    ),
    Question(
        id=2,
        question="Соответствовала ли продукция заявленным характеристикам?",
        type="choice",
        options=[
            "Полностью соответствовала",
            "Частично соответствовала",
            "Не соответствовала",
        ],
    ),
    Question(
        id=3,
        question="Как вы оцениваете скорость доставки?",
        type="rating",
        options=RATING_OPTIONS,
    ),
    Question(
        id=4,
        question="Качество обслуживания менеджеров",
        type="rating",
        options=RATING_OPTIONS,
    ),
    Question(
        id=5,
        question="Рекомендовали бы нашу компанию друзьям?",
        type="choice",
        options=[
            "Определенно да",
            "Скорее да",
            "Не знаю",
            "Скорее нет",
            "Определенно нет",
        ],
    ),
    Question(
        id=6,
        question="Что можно улучшить в нашей работе?",
        type="text",
        options=[],
    ),
)

DEFAULT_PRODUCTS = (
    "Бетон М100",
    "Бетон М150",
    "Бетон М200",
    "Бетон М250",
    "Бетон М300",
    "Бетон М350",
    "Бетон М400",
    "Цементный раствор",
    "Керамзитобетон",
    "Пескобетон",
    "Тротуарная плитка",
    "Бордюрный камень",
    "Железобетонные изделия",
    "Доставка бетона",
)


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Product name is required")
    return cleaned


class ProductCatalog:
    """Ordered, in-memory list of product names editable by administrators.

    The list lives only in process memory and is shared by every request, so
    all reads and writes go through ``_lock``.
    """

    def __init__(self, products=DEFAULT_PRODUCTS):
        self._products: list[str] = list(products)
        self._lock = Lock()

    def names(self) -> list[str]:
        with self._lock:
            return list(self._products)

    def add(self, name: str) -> list[str]:
        cleaned = _clean_name(name)
        with self._lock:
            if cleaned in self._products:
                raise Conflict("Product already exists")
            self._products.append(cleaned)
            return list(self._products)

    def rename(self, old_name: str, new_name: str) -> list[str]:
        old_cleaned = _clean_name(old_name)
        new_cleaned = _clean_name(new_name)
        with self._lock:
            if old_cleaned not in self._products:
                raise NotFound("Product not found")
            if new_cleaned != old_cleaned and new_cleaned in self._products:
                raise Conflict("Product already exists")
            self._products[self._products.index(old_cleaned)] = new_cleaned
            return list(self._products)

    def remove(self, name: str) -> list[str]:
        cleaned = _clean_name(name)
        with self._lock:
            if cleaned not in self._products:
                raise NotFound("Product not found")
            self._products.remove(cleaned)
            return list(self._products)

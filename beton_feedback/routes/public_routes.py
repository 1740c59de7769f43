import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import field_validator, model_validator
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from beton_feedback.auth.phone import normalize_phone
from beton_feedback.catalog import QUESTIONS
from beton_feedback.core.errors import InternalError, NotFound
from beton_feedback.database import get_db
from beton_feedback.events import ADMIN_STATUS_UPDATED
from beton_feedback.models.evaluation import Evaluation
from beton_feedback.models.user import User
from beton_feedback.report import render_report, report_data_for
from beton_feedback.schemas import (
    AuthResponse,
    CamelModel,
    CheckAdminResponse,
    EvaluationSubmitResponse,
    ProductsResponse,
    QuestionsResponse,
    UserOut,
    UserResponse,
    is_present,
)
from beton_feedback.state import AppState, get_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api', tags=['public'])
legacy_router = APIRouter(prefix='/api', tags=['legacy'])


class AuthRequest(CamelModel):
    username: str
    phone: str

    @model_validator(mode='before')
    @classmethod
    def require_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not (is_present(data.get('username')) and is_present(data.get('phone'))):
            raise ValueError('Username and phone are required')
        return data

    @field_validator('username')
    @classmethod
    def strip_username(cls, value: str) -> str:
        return value.strip()

    @field_validator('phone')
    @classmethod
    def normalize(cls, value: str) -> str:
        normalized = normalize_phone(value)
        if not normalized:
            raise ValueError('Phone number is invalid')
        return normalized


class EvaluationRequest(CamelModel):
    user_id: int
    product_name: str
    responses: dict[str, Any]
    overall_rating: int

    @model_validator(mode='before')
    @classmethod
    def require_fields(cls, data: Any) -> Any:
        required = ('userId', 'productName', 'responses', 'overallRating')
        if not isinstance(data, dict) or not all(is_present(data.get(name)) for name in required):
            raise ValueError('All fields are required')
        return data

    @field_validator('product_name')
    @classmethod
    def strip_product_name(cls, value: str) -> str:
        return value.strip()

    @field_validator('overall_rating')
    @classmethod
    def validate_overall_rating(cls, value: int) -> int:
        if not 1 <= value <= 5:
            raise ValueError('Overall rating must be between 1 and 5')
        return value


class UpdateAdminRequest(CamelModel):
    phone: str
    is_admin: bool = False

    @model_validator(mode='before')
    @classmethod
    def require_phone(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not is_present(data.get('phone')):
            raise ValueError('Phone number is required')
        return data

    @field_validator('phone')
    @classmethod
    def normalize(cls, value: str) -> str:
        normalized = normalize_phone(value)
        if not normalized:
            raise ValueError('Phone number is invalid')
        return normalized


@router.post('/auth', response_model=AuthResponse)
def authenticate(data: AuthRequest, db: Session = Depends(get_db)):
    try:
        user = db.query(User).filter(User.phone == data.phone).first()
        created = user is None
        if created:
            user = User(username=data.username, phone=data.phone)
            db.add(user)
            try:
                db.commit()
            except IntegrityError:
                # Another request registered the same phone first.
                db.rollback()
                user = db.query(User).filter(User.phone == data.phone).one()
                created = False
            else:
                db.refresh(user)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Authentication failed for a user record')
        raise InternalError('Database error during authentication') from exc

    logger.info('User %s %s', user.id, 'created' if created else 'logged in')
    return AuthResponse(
        user_id=user.id,
        message='User created successfully' if created else 'User logged in successfully',
    )


@router.get('/products', response_model=ProductsResponse)
def list_products(state: AppState = Depends(get_state)):
    return ProductsResponse(products=state.products.names())


@router.get('/questions', response_model=QuestionsResponse)
def list_questions():
    return QuestionsResponse(questions=list(QUESTIONS))


@router.post('/evaluate', response_model=EvaluationSubmitResponse)
def submit_evaluation(data: EvaluationRequest, db: Session = Depends(get_db)):
    try:
        user = db.get(User, data.user_id)
        if user is None:
            raise NotFound('User not found')

        evaluation = Evaluation(
            user_id=user.id,
            product_name=data.product_name,
            responses=data.responses,
            overall_rating=data.overall_rating,
        )
        db.add(evaluation)
        db.commit()
        db.refresh(evaluation)

        report = render_report(report_data_for(evaluation))
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to save evaluation')
        raise InternalError('Failed to save evaluation') from exc

    logger.info('Evaluation %s saved for user %s', evaluation.id, user.id)
    return EvaluationSubmitResponse(evaluation_id=evaluation.id, report_data=report)


@router.get('/check-admin/{phone}', response_model=CheckAdminResponse, response_model_exclude_none=True)
def check_admin(phone: str, db: Session = Depends(get_db)):
    normalized = normalize_phone(phone)
    try:
        user = db.query(User).filter(User.phone == normalized).first() if normalized else None
    except SQLAlchemyError as exc:
        logger.exception('Failed to check admin status')
        raise InternalError('Failed to check admin status') from exc

    if user is None:
        return CheckAdminResponse(success=False, is_admin=False, error='User not found')

    return CheckAdminResponse(
        success=True,
        is_admin=bool(user.is_admin),
        user_id=user.id,
        username=user.username,
    )


@legacy_router.post('/update-admin', response_model=UserResponse)
def update_admin(
    data: UpdateAdminRequest,
    db: Session = Depends(get_db),
    state: AppState = Depends(get_state),
):
    try:
        user = db.query(User).filter(User.phone == data.phone).first()
        if user is None:
            raise NotFound('User not found')

        user.is_admin = data.is_admin
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update admin status')
        raise InternalError('Failed to update admin status') from exc

    logger.warning('Admin status of user %s set to %s through the unauthenticated endpoint', user.id, user.is_admin)
    state.events.publish(ADMIN_STATUS_UPDATED, {'userId': user.id, 'isAdmin': bool(user.is_admin)})
    return UserResponse(
        message=f'Admin status updated for user {user.username}',
        user=UserOut.model_validate(user),
    )

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse, Response
from pydantic import field_validator, model_validator
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from beton_feedback import audit, events
from beton_feedback.auth.authenticators import AdminIdentity
from beton_feedback.auth.dependencies import require_admin
from beton_feedback.auth.phone import normalize_phone
from beton_feedback.core.errors import Conflict, InternalError, NotFound
from beton_feedback.database import get_db
from beton_feedback.export import evaluations_csv, users_csv
from beton_feedback.models.evaluation import Evaluation
from beton_feedback.models.user import User
from beton_feedback.report import render_report, report_data_for
from beton_feedback.schemas import (
    CamelModel,
    EvaluationOut,
    EvaluationsResponse,
    LogsResponse,
    MessageResponse,
    ProductStat,
    ProductsResponse,
    StatisticsResponse,
    UserDetailResponse,
    UserOut,
    UserResponse,
    UsersResponse,
    is_present,
    user_summary,
)
from beton_feedback.state import AppState, get_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/api/admin', tags=['admin'])


class ProductRequest(CamelModel):
    name: str

    @model_validator(mode='before')
    @classmethod
    def require_name(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not is_present(data.get('name')):
            raise ValueError('Product name is required')
        return data


class ProductRenameRequest(CamelModel):
    old_name: str
    new_name: str

    @model_validator(mode='before')
    @classmethod
    def require_names(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not (is_present(data.get('oldName')) and is_present(data.get('newName'))):
            raise ValueError('Old and new product names are required')
        return data


class UserUpdateRequest(CamelModel):
    username: str | None = None
    phone: str | None = None

    @model_validator(mode='before')
    @classmethod
    def require_changes(cls, data: Any) -> Any:
        if not isinstance(data, dict) or not (is_present(data.get('username')) or is_present(data.get('phone'))):
            raise ValueError('Nothing to update')
        return data

    @field_validator('username')
    @classmethod
    def strip_username(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator('phone')
    @classmethod
    def normalize(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        normalized = normalize_phone(value)
        if not normalized:
            raise ValueError('Phone number is invalid')
        return normalized


class AdminStatusRequest(CamelModel):
    is_admin: bool

    @model_validator(mode='before')
    @classmethod
    def require_flag(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get('isAdmin') is None:
            raise ValueError('isAdmin is required')
        return data


def record_admin_action(
    state: AppState,
    admin: AdminIdentity,
    action: str,
    details: dict[str, Any],
    event: str,
    payload: dict[str, Any],
) -> None:
    """Journal a mutation that has already been committed and notify admin sessions."""
    state.audit_log.record(action, details, admin.phone)
    state.events.publish(event, payload)


def storage_failure(db: Session, message: str, exc: SQLAlchemyError) -> InternalError:
    db.rollback()
    logger.exception(message)
    return InternalError(message)


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound('User not found')
    return user


# Products

@router.get('/products', response_model=ProductsResponse)
def list_products(
    _: AdminIdentity = Depends(require_admin),
    state: AppState = Depends(get_state),
):
    return ProductsResponse(products=state.products.names())


@router.post('/products', response_model=ProductsResponse)
def add_product(
    data: ProductRequest,
    admin: AdminIdentity = Depends(require_admin),
    state: AppState = Depends(get_state),
):
    products = state.products.add(data.name)
    record_admin_action(
        state, admin, audit.ADD_PRODUCT, {'name': data.name.strip()},
        events.PRODUCTS_UPDATED, {'products': products},
    )
    return ProductsResponse(products=products)


@router.put('/products', response_model=ProductsResponse)
def rename_product(
    data: ProductRenameRequest,
    admin: AdminIdentity = Depends(require_admin),
    state: AppState = Depends(get_state),
):
    products = state.products.rename(data.old_name, data.new_name)
    record_admin_action(
        state, admin, audit.UPDATE_PRODUCT, {'oldName': data.old_name.strip(), 'newName': data.new_name.strip()},
        events.PRODUCTS_UPDATED, {'products': products},
    )
    return ProductsResponse(products=products)


@router.delete('/products/{name:path}', response_model=ProductsResponse)
def remove_product(
    name: str,
    admin: AdminIdentity = Depends(require_admin),
    state: AppState = Depends(get_state),
):
    products = state.products.remove(name)
    record_admin_action(
        state, admin, audit.DELETE_PRODUCT, {'name': name.strip()},
        events.PRODUCTS_UPDATED, {'products': products},
    )
    return ProductsResponse(products=products)


# Evaluations

@router.get('/evaluations', response_model=EvaluationsResponse)
def list_evaluations(
    _: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        evaluations = (
            db.query(Evaluation)
            .options(joinedload(Evaluation.user))
            .order_by(Evaluation.created_at.desc(), Evaluation.id.desc())
            .all()
        )
        return EvaluationsResponse(evaluations=[EvaluationOut.model_validate(item) for item in evaluations])
    except SQLAlchemyError as exc:
        raise storage_failure(db, 'Failed to fetch evaluations', exc) from exc


@router.delete('/evaluations/{evaluation_id}', response_model=MessageResponse)
def delete_evaluation(
    evaluation_id: int,
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
    state: AppState = Depends(get_state),
):
    try:
        evaluation = db.get(Evaluation, evaluation_id)
        if evaluation is None:
            raise NotFound('Evaluation not found')

        details = {
            'evaluationId': evaluation.id,
            'userId': evaluation.user_id,
            'productName': evaluation.product_name,
        }
        db.delete(evaluation)
        db.commit()
    except SQLAlchemyError as exc:
        raise storage_failure(db, 'Failed to delete evaluation', exc) from exc

    record_admin_action(
        state, admin, audit.DELETE_EVALUATION, details,
        events.EVALUATION_DELETED, {'evaluationId': evaluation_id},
    )
    return MessageResponse(message='Evaluation deleted successfully')


@router.get('/evaluations/{evaluation_id}/report', response_class=PlainTextResponse)
def download_evaluation_report(
    evaluation_id: int,
    _: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        evaluation = (
            db.query(Evaluation)
            .options(joinedload(Evaluation.user))
            .filter(Evaluation.id == evaluation_id)
            .first()
        )
    except SQLAlchemyError as exc:
        raise storage_failure(db, 'Failed to generate report', exc) from exc

    if evaluation is None:
        raise NotFound('Evaluation not found')

    return PlainTextResponse(
        render_report(report_data_for(evaluation)),
        headers={'Content-Disposition': f'attachment; filename=evaluation-{evaluation_id}.txt'},
    )


# Users

@router.get('/users', response_model=UsersResponse)
def list_users(
    _: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        users = (
            db.query(User)
            .options(selectinload(User.evaluations))
            .order_by(User.created_at.desc(), User.id.desc())
            .all()
        )
        return UsersResponse(users=[user_summary(user) for user in users])
    except SQLAlchemyError as exc:
        raise storage_failure(db, 'Failed to fetch users', exc) from exc


@router.get('/users/{user_id}', response_model=UserDetailResponse)
def get_user(
    user_id: int,
    _: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        user = get_user_or_404(db, user_id)
        evaluations = (
            db.query(Evaluation)
            .filter(Evaluation.user_id == user.id)
            .order_by(Evaluation.created_at.desc(), Evaluation.id.desc())
            .all()
        )
        return UserDetailResponse(
            user=user_summary(user),
            evaluations=[EvaluationOut.model_validate(item) for item in evaluations],
        )
    except SQLAlchemyError as exc:
        raise storage_failure(db, 'Failed to fetch user', exc) from exc


@router.put('/users/{user_id}', response_model=UserResponse)
def update_user(
    user_id: int,
    data: UserUpdateRequest,
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
    state: AppState = Depends(get_state),
):
    try:
        user = get_user_or_404(db, user_id)

        if data.phone and data.phone != user.phone:
            taken = db.query(User.id).filter(User.phone == data.phone, User.id != user.id).first()
            if taken:
                raise Conflict('Phone number is already registered')
            user.phone = data.phone
        if data.username:
            user.username = data.username

        db.commit()
        db.refresh(user)
    except IntegrityError as exc:
        db.rollback()
        raise Conflict('Phone number is already registered') from exc
    except SQLAlchemyError as exc:
        raise storage_failure(db, 'Failed to update user', exc) from exc

    payload = {'userId': user.id, 'username': user.username, 'phone': user.phone}
    record_admin_action(state, admin, audit.UPDATE_USER, payload, events.USER_UPDATED, payload)
    return UserResponse(message='User updated successfully', user=UserOut.model_validate(user))


@router.put('/users/{user_id}/admin', response_model=UserResponse)
def set_admin_status(
    user_id: int,
    data: AdminStatusRequest,
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
    state: AppState = Depends(get_state),
):
    try:
        user = get_user_or_404(db, user_id)
        user.is_admin = data.is_admin
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as exc:
        raise storage_failure(db, 'Failed to update admin status', exc) from exc

    record_admin_action(
        state, admin, audit.UPDATE_ADMIN_STATUS,
        {'userId': user.id, 'phone': user.phone, 'isAdmin': bool(user.is_admin)},
        events.ADMIN_STATUS_UPDATED, {'userId': user.id, 'isAdmin': bool(user.is_admin)},
    )
    return UserResponse(
        message=f'Admin status updated for user {user.username}',
        user=UserOut.model_validate(user),
    )


@router.delete('/users/{user_id}', response_model=MessageResponse)
def delete_user(
    user_id: int,
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
    state: AppState = Depends(get_state),
):
    try:
        user = get_user_or_404(db, user_id)
        details = {
            'userId': user.id,
            'username': user.username,
            'phone': user.phone,
            'evaluationsDeleted': len(user.evaluations),
        }
        db.delete(user)
        db.commit()
    except SQLAlchemyError as exc:
        raise storage_failure(db, 'Failed to delete user', exc) from exc

    record_admin_action(state, admin, audit.DELETE_USER, details, events.USER_DELETED, {'userId': user_id})
    return MessageResponse(message='User and related evaluations deleted successfully')


# Statistics, exports, logs

@router.get('/statistics', response_model=StatisticsResponse)
def get_statistics(
    _: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        users_count = db.query(func.count(User.id)).scalar() or 0
        admins_count = db.query(func.count(User.id)).filter(User.is_admin.is_(True)).scalar() or 0
        eval_count = db.query(func.count(Evaluation.id)).scalar() or 0
        rows = (
            db.query(
                Evaluation.product_name,
                func.count(Evaluation.id),
                func.avg(Evaluation.overall_rating),
            )
            .group_by(Evaluation.product_name)
            .order_by(func.count(Evaluation.id).desc(), Evaluation.product_name.asc())
            .all()
        )
    except SQLAlchemyError as exc:
        raise storage_failure(db, 'Failed to fetch statistics', exc) from exc

    return StatisticsResponse(
        users_count=users_count,
        eval_count=eval_count,
        admins_count=admins_count,
        products_stats=[
            ProductStat(product_name=name, count=count, average_rating=round(float(average or 0), 2))
            for name, count, average in rows
        ],
    )


@router.get('/export/evaluations')
def export_evaluations(
    _: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        evaluations = (
            db.query(Evaluation)
            .options(joinedload(Evaluation.user))
            .order_by(Evaluation.created_at.desc(), Evaluation.id.desc())
            .all()
        )
        content = evaluations_csv(evaluations)
    except SQLAlchemyError as exc:
        raise storage_failure(db, 'Failed to export evaluations', exc) from exc

    return Response(
        content=content,
        media_type='text/csv',
        headers={'Content-Disposition': 'attachment; filename=evaluations.csv'},
    )


@router.get('/export/users')
def export_users(
    _: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        users = (
            db.query(User)
            .options(selectinload(User.evaluations))
            .order_by(User.created_at.desc(), User.id.desc())
            .all()
        )
        content = users_csv(users)
    except SQLAlchemyError as exc:
        raise storage_failure(db, 'Failed to export users', exc) from exc

    return Response(
        content=content,
        media_type='text/csv',
        headers={'Content-Disposition': 'attachment; filename=users.csv'},
    )


@router.get('/logs', response_model=LogsResponse)
def list_logs(
    _: AdminIdentity = Depends(require_admin),
    state: AppState = Depends(get_state),
):
    # Stored oldest first; the admin panel shows the newest entry on top.
    return LogsResponse(logs=list(reversed(state.audit_log.list())))

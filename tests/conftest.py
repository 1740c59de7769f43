import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from fastapi.testclient import TestClient  # noqa: E402

from beton_feedback.auth.authenticators import PhoneTokenAuthenticator  # noqa: E402
from beton_feedback.database import Base, enable_sqlite_foreign_keys, get_db  # noqa: E402
from beton_feedback.main import create_app  # noqa: E402
from beton_feedback.models.evaluation import Evaluation  # noqa: E402
from beton_feedback.models.user import User  # noqa: E402
from beton_feedback.state import AppState  # noqa: E402

ADMIN_PHONE = '+79990000001'


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app_state():
    return AppState(authenticator=PhoneTokenAuthenticator())


@pytest.fixture
def client(session_factory, app_state):
    app = create_app(app_state)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def admin_user(db):
    return make_user(db, username='Admin', phone=ADMIN_PHONE, is_admin=True)


@pytest.fixture
def admin_headers(admin_user):
    return {'adminToken': admin_user.phone}


def make_user(db, username='Ivan', phone='+79991112233', is_admin=False) -> User:
    user = User(username=username, phone=phone, is_admin=is_admin)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_evaluation(db, user, product_name='Бетон М200', overall_rating=4, responses=None) -> Evaluation:
    evaluation = Evaluation(
        user_id=user.id,
        product_name=product_name,
        overall_rating=overall_rating,
        responses=responses if responses is not None else {'question_1': 5, 'question_6': 'Быстрее доставка'},
    )
    db.add(evaluation)
    db.commit()
    db.refresh(evaluation)
    return evaluation

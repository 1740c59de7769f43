import csv
import io

import pytest
from sqlalchemy.exc import SQLAlchemyError

from beton_feedback import audit, events
from beton_feedback.database import get_db
from beton_feedback.models.evaluation import Evaluation
from beton_feedback.models.user import User
from conftest import ADMIN_PHONE, make_evaluation, make_user


@pytest.fixture
def published(app_state):
    received = []
    app_state.events.subscribe(lambda event, payload: received.append((event, payload)))
    return received


def _published_events(published) -> list[str]:
    return [event for event, _ in published]


# Admin gate

def test_admin_route_without_token_is_rejected(client) -> None:
    response = client.get('/api/admin/evaluations')

    assert response.status_code == 403
    assert response.json() == {'success': False, 'error': 'No admin token provided'}


def test_admin_route_with_non_admin_phone_is_rejected(client, db) -> None:
    user = make_user(db, phone='+79991112233')

    response = client.get('/api/admin/evaluations', headers={'adminToken': user.phone})

    assert response.status_code == 403
    assert response.json() == {'success': False, 'error': 'Invalid admin credentials'}


def test_admin_token_header_is_case_insensitive_and_normalized(client, admin_user) -> None:
    response = client.get('/api/admin/products', headers={'ADMINTOKEN': '+7 (999) 000-00-01'})

    assert response.status_code == 200
    assert response.json()['success'] is True


# Products

def test_product_crud_records_audit_entries(client, admin_headers, app_state, published) -> None:
    added = client.post('/api/admin/products', json={'name': 'Бетон М500'}, headers=admin_headers)
    renamed = client.put(
        '/api/admin/products',
        json={'oldName': 'Бетон М500', 'newName': 'Бетон М550'},
        headers=admin_headers,
    )
    removed = client.delete('/api/admin/products/Бетон М550', headers=admin_headers)

    assert added.status_code == 200
    assert added.json()['products'][-1] == 'Бетон М500'
    assert renamed.json()['products'][-1] == 'Бетон М550'
    assert 'Бетон М550' not in removed.json()['products']
    assert client.get('/api/products').json()['products'] == removed.json()['products']

    entries = app_state.audit_log.list()
    assert [entry.action for entry in entries] == [audit.ADD_PRODUCT, audit.UPDATE_PRODUCT, audit.DELETE_PRODUCT]
    assert all(entry.admin_phone == ADMIN_PHONE for entry in entries)
    assert _published_events(published).count(events.PRODUCTS_UPDATED) == 3


def test_product_name_with_slash_can_be_deleted(client, admin_headers, app_state) -> None:
    added = client.post('/api/admin/products', json={'name': 'Плитка 1/2'}, headers=admin_headers)
    removed = client.delete('/api/admin/products/Плитка 1%2F2', headers=admin_headers)

    assert added.status_code == 200
    assert removed.status_code == 200
    assert 'Плитка 1/2' not in removed.json()['products']
    assert app_state.audit_log.list()[-1].details == {'name': 'Плитка 1/2'}


def test_product_errors_do_not_create_audit_entries(client, admin_headers, app_state) -> None:
    duplicate = client.post('/api/admin/products', json={'name': 'Бетон М100'}, headers=admin_headers)
    blank = client.post('/api/admin/products', json={'name': '  '}, headers=admin_headers)
    missing = client.delete('/api/admin/products/Нет такого', headers=admin_headers)

    assert duplicate.status_code == 400
    assert duplicate.json()['error'] == 'Product already exists'
    assert blank.status_code == 400
    assert missing.status_code == 404
    assert len(app_state.audit_log) == 0


# Evaluations

def test_list_evaluations_newest_first_with_user(client, db, admin_headers) -> None:
    user = make_user(db)
    older = make_evaluation(db, user, product_name='Бетон М100')
    newer = make_evaluation(db, user, product_name='Бетон М200')

    body = client.get('/api/admin/evaluations', headers=admin_headers).json()

    assert [item['id'] for item in body['evaluations']] == [newer.id, older.id]
    assert body['evaluations'][0]['user'] == {'username': 'Ivan', 'phone': '+79991112233'}
    assert body['evaluations'][0]['productName'] == 'Бетон М200'


def test_delete_evaluation(client, db, admin_headers, app_state, published) -> None:
    evaluation = make_evaluation(db, make_user(db))
    evaluation_id = evaluation.id

    response = client.delete(f'/api/admin/evaluations/{evaluation_id}', headers=admin_headers)

    assert response.json() == {'success': True, 'message': 'Evaluation deleted successfully'}
    db.expire_all()
    assert db.get(Evaluation, evaluation_id) is None
    entry = app_state.audit_log.list()[-1]
    assert entry.action == audit.DELETE_EVALUATION
    assert entry.details['evaluationId'] == evaluation_id
    assert (events.EVALUATION_DELETED, {'evaluationId': evaluation_id}) in published
    assert events.NEW_LOG in _published_events(published)


def test_delete_missing_evaluation_is_404_without_audit(client, admin_headers, app_state) -> None:
    response = client.delete('/api/admin/evaluations/404', headers=admin_headers)

    assert response.status_code == 404
    assert response.json()['error'] == 'Evaluation not found'
    assert len(app_state.audit_log) == 0


def test_delete_evaluation_storage_failure_is_500_without_audit(
    client, db, session_factory, admin_headers, app_state, published, monkeypatch
) -> None:
    evaluation = make_evaluation(db, make_user(db))
    evaluation_id = evaluation.id

    def failing_commit():
        raise SQLAlchemyError('disk I/O error')

    def override_get_db():
        session = session_factory()
        monkeypatch.setattr(session, 'commit', failing_commit)
        try:
            yield session
        finally:
            session.close()

    client.app.dependency_overrides[get_db] = override_get_db

    response = client.delete(f'/api/admin/evaluations/{evaluation_id}', headers=admin_headers)

    assert response.status_code == 500
    assert response.json() == {'success': False, 'error': 'Failed to delete evaluation'}
    assert 'disk I/O error' not in response.text
    assert len(app_state.audit_log) == 0
    assert published == []
    db.expire_all()
    assert db.get(Evaluation, evaluation_id) is not None


def test_report_download_matches_submission_preview(client, db, admin_headers) -> None:
    user = make_user(db)
    submitted = client.post('/api/evaluate', json={
        'userId': user.id,
        'productName': 'Керамзитобетон',
        'responses': {'question_1': 4, 'question_6': 'Ничего'},
        'overallRating': 4,
    }).json()

    response = client.get(f"/api/admin/evaluations/{submitted['evaluationId']}/report", headers=admin_headers)

    assert response.status_code == 200
    assert response.headers['content-type'].startswith('text/plain')
    assert response.headers['content-disposition'] == f"attachment; filename=evaluation-{submitted['evaluationId']}.txt"
    assert response.text == submitted['reportData']


def test_report_for_missing_evaluation(client, admin_headers) -> None:
    response = client.get('/api/admin/evaluations/12345/report', headers=admin_headers)

    assert response.status_code == 404
    assert response.json()['error'] == 'Evaluation not found'


# Users

def test_list_and_get_users(client, db, admin_user, admin_headers) -> None:
    user = make_user(db)
    make_evaluation(db, user)

    listed = client.get('/api/admin/users', headers=admin_headers).json()
    detail = client.get(f'/api/admin/users/{user.id}', headers=admin_headers).json()

    counts = {item['id']: item['evaluationsCount'] for item in listed['users']}
    assert counts == {admin_user.id: 0, user.id: 1}
    assert detail['user']['phone'] == '+79991112233'
    assert len(detail['evaluations']) == 1


def test_update_user_profile(client, db, admin_headers, app_state, published) -> None:
    user = make_user(db)

    response = client.put(
        f'/api/admin/users/{user.id}',
        json={'username': 'Ivan Petrov', 'phone': '8 (999) 555-44-33'},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()['user']['username'] == 'Ivan Petrov'
    assert response.json()['user']['phone'] == '+89995554433'
    assert app_state.audit_log.list()[-1].action == audit.UPDATE_USER
    assert (
        events.USER_UPDATED,
        {'userId': user.id, 'username': 'Ivan Petrov', 'phone': '+89995554433'},
    ) in published


def test_update_user_rejects_taken_phone_and_empty_payload(client, db, admin_user, admin_headers, app_state) -> None:
    user = make_user(db)

    taken = client.put(f'/api/admin/users/{user.id}', json={'phone': admin_user.phone}, headers=admin_headers)
    empty = client.put(f'/api/admin/users/{user.id}', json={}, headers=admin_headers)
    missing = client.put('/api/admin/users/999', json={'username': 'X'}, headers=admin_headers)

    assert taken.status_code == 400
    assert taken.json()['error'] == 'Phone number is already registered'
    assert empty.status_code == 400
    assert empty.json()['error'] == 'Nothing to update'
    assert missing.status_code == 404
    assert len(app_state.audit_log) == 0


def test_set_admin_status(client, db, admin_headers, app_state, published) -> None:
    user = make_user(db)

    response = client.put(f'/api/admin/users/{user.id}/admin', json={'isAdmin': True}, headers=admin_headers)

    assert response.json()['user']['isAdmin'] is True
    assert app_state.audit_log.list()[-1].action == audit.UPDATE_ADMIN_STATUS
    assert (events.ADMIN_STATUS_UPDATED, {'userId': user.id, 'isAdmin': True}) in published

    promoted = client.get('/api/admin/products', headers={'adminToken': user.phone})
    assert promoted.status_code == 200


def test_delete_user_cascades_evaluations(client, db, admin_headers, app_state, published) -> None:
    user = make_user(db)
    other = make_user(db, username='Olga', phone='+79990000002')
    make_evaluation(db, user)
    make_evaluation(db, user)
    kept = make_evaluation(db, other)
    user_id = user.id

    response = client.delete(f'/api/admin/users/{user_id}', headers=admin_headers)

    assert response.status_code == 200
    remaining = client.get('/api/admin/evaluations', headers=admin_headers).json()['evaluations']
    assert [item['id'] for item in remaining] == [kept.id]
    assert all(item['userId'] != user_id for item in remaining)
    db.expire_all()
    assert db.get(User, user_id) is None
    entry = app_state.audit_log.list()[-1]
    assert entry.action == audit.DELETE_USER
    assert entry.details['evaluationsDeleted'] == 2
    assert (events.USER_DELETED, {'userId': user_id}) in published


def test_delete_missing_user(client, admin_headers) -> None:
    response = client.delete('/api/admin/users/999', headers=admin_headers)

    assert response.status_code == 404
    assert response.json()['error'] == 'User not found'


# Statistics, exports, logs

def test_statistics(client, db, admin_headers) -> None:
    user = make_user(db)
    make_evaluation(db, user, product_name='Бетон М200', overall_rating=5)
    make_evaluation(db, user, product_name='Бетон М200', overall_rating=4)
    make_evaluation(db, user, product_name='Пескобетон', overall_rating=3)

    body = client.get('/api/admin/statistics', headers=admin_headers).json()

    assert body['usersCount'] == 2
    assert body['adminsCount'] == 1
    assert body['evalCount'] == 3
    assert body['productsStats'] == [
        {'productName': 'Бетон М200', 'count': 2, 'averageRating': 4.5},
        {'productName': 'Пескобетон', 'count': 1, 'averageRating': 3.0},
    ]


def test_export_evaluations_csv(client, db, admin_headers) -> None:
    make_evaluation(db, make_user(db), responses={'question_1': 5, 'question_6': 'Всё хорошо'})

    response = client.get('/api/admin/export/evaluations', headers=admin_headers)

    assert response.status_code == 200
    assert response.headers['content-type'].startswith('text/csv')
    assert response.headers['content-disposition'] == 'attachment; filename=evaluations.csv'
    rows = list(csv.DictReader(io.StringIO(response.text.lstrip('\ufeff'))))
    assert rows[0]['username'] == 'Ivan'
    assert rows[0]['question_6'] == 'Всё хорошо'


def test_export_users_csv(client, db, admin_headers) -> None:
    make_user(db)

    response = client.get('/api/admin/export/users', headers=admin_headers)

    rows = list(csv.DictReader(io.StringIO(response.text.lstrip('\ufeff'))))
    assert response.headers['content-disposition'] == 'attachment; filename=users.csv'
    assert {row['phone'] for row in rows} == {ADMIN_PHONE, '+79991112233'}


def test_logs_are_listed_most_recent_first(client, admin_headers) -> None:
    client.post('/api/admin/products', json={'name': 'Первый'}, headers=admin_headers)
    client.post('/api/admin/products', json={'name': 'Второй'}, headers=admin_headers)

    body = client.get('/api/admin/logs', headers=admin_headers).json()

    assert body['success'] is True
    assert [entry['details']['name'] for entry in body['logs']] == ['Второй', 'Первый']
    assert body['logs'][0]['adminPhone'] == ADMIN_PHONE
    assert body['logs'][0]['action'] == audit.ADD_PRODUCT

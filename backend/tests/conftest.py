"""
Pytest fixtures for possync backend tests.

Provides an in-memory database, account/token fixtures, and the Flask test client.
"""

import pytest
from possync import create_app
from possync.extensions import db
from possync.services.auth_service import create_account
from possync.services.session_service import issue_token


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'SYNC_AUTO_REGISTER': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh database (and identity map) for each test."""
    db.session.remove()
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()
    db.session.remove()


@pytest.fixture(scope='function')
def account(db_session):
    """Account A (first shop)."""
    return create_account("shop-a", "secret-a")


@pytest.fixture(scope='function')
def other_account(db_session):
    """Account B (second shop, must never see A's data)."""
    return create_account("shop-b", "secret-b")


@pytest.fixture(scope='function')
def token(account):
    _, plaintext = issue_token(account.id)
    return plaintext


@pytest.fixture(scope='function')
def auth_headers(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def other_headers(other_account):
    _, plaintext = issue_token(other_account.id)
    return {"Authorization": f"Bearer {plaintext}"}

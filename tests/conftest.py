from datetime import date
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from clipverse.config import TestingConfig
from clipverse.extensions import db
from clipverse.main import create_app
from clipverse.models.user import RegistrationState, User
from clipverse.models.wallet import Wallet
from clipverse.services import wallet_service


@pytest.fixture
def app(tmp_path):
    class Config(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'test.db'}"
        PROFILES_FOLDER = str(tmp_path / "profiles")
        COMMUNITIES_FOLDER = str(tmp_path / "communities")

    app = create_app(Config)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make_user(username=None, balance=None, with_wallet=True):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            phone=f"+9100000{n:05d}",
            name=f"User {n}",
            username=username or f"user{n}",
            date_of_birth=date(1995, 1, 1),
            gender="other",
            registration_state=RegistrationState.REGISTERED,
        )
        db.session.add(user)
        db.session.flush()
        if with_wallet:
            db.session.add(Wallet(user_id=user.id, balance=Decimal("0.00")))
        db.session.commit()

        if balance:
            wallet_service.credit(user.id, balance, "reward")
        return user

    return _make_user


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=user.id)
        return {"Authorization": f"Bearer {token}"}

    return _headers
import os

# Must be set before the app modules read their configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

from functools import lru_cache

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel

from landscape_forms.database import create_db_and_tables, create_db_engine, get_session
from landscape_forms.main import app
from landscape_forms.models.chemical import Chemical
from landscape_forms.models.user import ROLE_ADMIN, ROLE_EMPLOYEE, User
from landscape_forms.services.auth import create_access_token, hash_password

PASSWORD = "correct-horse"


@lru_cache(maxsize=None)
def _password_hash(password):
    return hash_password(password)


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    create_db_and_tables(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(session):
    def override_get_session():
        yield session

    app.dependency_overrides[get_session] = override_get_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    def _make_user(username, first_name="Test", last_name="User", role=ROLE_EMPLOYEE,
                   pending=False, password=PASSWORD):
        user = User(
            username=username,
            first_name=first_name,
            last_name=last_name,
            role=role,
            pending=pending,
            password_hash=_password_hash(password),
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def alice(make_user):
    return make_user("alice", first_name="Alice", last_name="Anders")


@pytest.fixture
def bob(make_user):
    return make_user("bob", first_name="Bob", last_name="Baker")


@pytest.fixture
def admin(make_user):
    return make_user("admin", first_name="Ada", last_name="Admin", role=ROLE_ADMIN)


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest.fixture
def make_chemical(session):
    def _make_chemical(chemical_name, category="lawn", brand_name="Acme"):
        chemical = Chemical(category=category, brand_name=brand_name, chemical_name=chemical_name)
        session.add(chemical)
        session.commit()
        session.refresh(chemical)
        return chemical

    return _make_chemical


def form_fields(**overrides):
    data = {
        "first_name": "Jane",
        "last_name": "Doe",
        "street_number": "12",
        "street_name": "Maple Ave",
        "town": "Teaneck",
        "zip_code": "07666",
        "home_phone": "201-555-0100",
        "other_phone": "",
        "call_before": False,
        "is_holiday": False,
    }
    data.update(overrides)
    return data


def application(chem_used, app_timestamp="2024-05-01T10:00:00", amount_applied="12.50", location_code="1A"):
    return {
        "chem_used": chem_used,
        "app_timestamp": app_timestamp,
        "rate": "2 oz/gal",
        "amount_applied": amount_applied,
        "location_code": location_code,
    }


def shrub_payload(applications=(), **overrides):
    data = form_fields(**overrides)
    data.setdefault("num_shrubs", 8)
    data.setdefault("flea_only", False)
    data["applications"] = list(applications)
    return data


def lawn_payload(applications=(), **overrides):
    data = form_fields(**overrides)
    data.setdefault("lawn_area_sq_ft", 5000)
    data.setdefault("fert_only", True)
    data["applications"] = list(applications)
    return data


def pesticide_payload(applications=(), **overrides):
    data = form_fields(**overrides)
    data.setdefault("pesticide_name", "Bifenthrin")
    data["applications"] = list(applications)
    return data

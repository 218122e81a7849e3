import os
from typing import Callable, Generator, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")

from common.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from common.auth import create_access_token, get_password_hash  # noqa: E402
from common.database import Base, SessionLocal, engine  # noqa: E402
from common.dependencies import get_clock, rooms_cache  # noqa: E402
from common.models import RoleEnum, Room, RoomStatus, User  # noqa: E402
from services.bookings.app import app as bookings_app  # noqa: E402
from services.rooms.app import app as rooms_app  # noqa: E402
from services.users.app import app as users_app  # noqa: E402


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    rooms_cache.invalidate()
    yield
    for fastapi_app in (bookings_app, rooms_app, users_app):
        fastapi_app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def users_client() -> Generator[TestClient, None, None]:
    with TestClient(users_app) as client:
        yield client


@pytest.fixture()
def rooms_client() -> Generator[TestClient, None, None]:
    with TestClient(rooms_app) as client:
        yield client


@pytest.fixture()
def bookings_client() -> Generator[TestClient, None, None]:
    with TestClient(bookings_app) as client:
        yield client


@pytest.fixture()
def make_room(db_session) -> Callable[..., Room]:
    def factory(name: str = "Focus Room", capacity: int = 6, status: RoomStatus = RoomStatus.ACTIVE, **extra) -> Room:
        room = Room(name=name, capacity=capacity, status=status, **extra)
        db_session.add(room)
        db_session.commit()
        db_session.refresh(room)
        return room

    return factory


@pytest.fixture()
def make_user(db_session) -> Callable[..., User]:
    def factory(username: str, role: RoleEnum = RoleEnum.REGULAR) -> User:
        user = User(
            name=username.title(),
            username=username,
            email=f"{username}@example.com",
            role=role,
            hashed_password=get_password_hash("Passw0rd!"),
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return factory


def bearer(user: User) -> dict[str, str]:
    token = create_access_token({"sub": user.username, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def headers_for() -> Callable[[User], dict[str, str]]:
    return bearer


@pytest.fixture()
def admin_headers(make_user) -> dict[str, str]:
    return bearer(make_user("admin", RoleEnum.ADMIN))


@pytest.fixture()
def user_headers(make_user) -> dict[str, str]:
    return bearer(make_user("alice"))


@pytest.fixture()
def other_headers(make_user) -> dict[str, str]:
    return bearer(make_user("bob"))


@pytest.fixture()
def freeze_clock() -> Callable[[str], None]:
    """Pin the wall clock seen by every service to a fixed timestamp."""

    def freeze(value: str, apps: Optional[tuple[FastAPI, ...]] = None) -> None:
        for fastapi_app in apps or (bookings_app, rooms_app):
            fastapi_app.dependency_overrides[get_clock] = lambda: (lambda: value)

    return freeze

"""Pytest bootstrap: project imports, settings and per-test databases."""

import os
import sys
from datetime import datetime
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Settings are read at import time; give them something to read.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("EMAIL_NOTIFICATIONS_ENABLED", "false")

# Ensure project root is on sys.path so `import mentormatch` works
PROJECT_ROOT = Path(__file__).resolve().parents[1]
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

from mentormatch.database import Base  # noqa: E402
from mentormatch.models.user import ApplicationStatus, User, UserProfile, UserRole  # noqa: E402

BASE_TIME = datetime(2026, 3, 2, 9, 0, 0)


@pytest.fixture
def db_session():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


def create_user(
    db,
    *,
    role: str,
    email: str,
    name: str = None,
    status: str = ApplicationStatus.APPROVED.value,
    capacity: int = 3,
    active: int = 0,
    created_at: datetime = BASE_TIME,
    is_active: bool = True,
    **profile_fields,
) -> User:
    user = User(
        name=name or email.split("@", 1)[0].title(),
        email=email,
        password_hash="hash",
        role=role,
        application_status=status,
        is_active=is_active,
        approved_at=created_at if status == ApplicationStatus.APPROVED.value else None,
        mentor_capacity=capacity,
        active_mentees_count=active,
        created_at=created_at,
    )
    db.add(user)
    db.flush()
    db.add(UserProfile(user_id=user.id, display_name=user.name, **profile_fields))
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_mentor(db_session):
    def _make(email: str = "mentor@uni.edu", **kwargs) -> User:
        kwargs.setdefault("expertise_areas", ["react", "python"])
        kwargs.setdefault("availability_slots", [{"day": "mon", "start": "09:00", "end": "12:00"}])
        return create_user(db_session, role=UserRole.MENTOR.value, email=email, **kwargs)
    return _make


@pytest.fixture
def make_mentee(db_session):
    def _make(email: str = "mentee@uni.edu", **kwargs) -> User:
        kwargs.setdefault("interests", ["react"])
        kwargs.setdefault("availability_slots", [{"day": "mon", "start": "10:00", "end": "11:00"}])
        return create_user(db_session, role=UserRole.MENTEE.value, email=email, **kwargs)
    return _make


@pytest.fixture
def make_admin(db_session):
    def _make(email: str = "admin@uni.edu") -> User:
        return create_user(db_session, role=UserRole.ADMIN.value, email=email)
    return _make

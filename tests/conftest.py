"""Shared test fixtures for medbook tests."""

from datetime import date
from typing import Generator
from unittest.mock import patch

import pytest

from medbook.models.schemas import Role
from medbook.storage.database import MedbookDB

# 2024-03-04 is a Monday
MONDAY = date(2024, 3, 4)
SUNDAY = date(2024, 3, 10)


@pytest.fixture
def db() -> Generator[MedbookDB, None, None]:
    """In-memory database with schema."""
    database = MedbookDB(":memory:")
    database.init_schema()
    yield database
    database.close()


@pytest.fixture
def provider(db):
    """Dr. Sarah Smith, cardiology, Mondays 09:00-10:00."""
    user = db.create_user(
        email="sarah@clinic.test",
        full_name="Dr. Sarah Smith",
        role=Role.DOCTOR,
        specialty="Cardiology",
    )
    doc = db.get_provider_by_user(user.id)
    db.upsert_availability(
        doc.id, [{"day_of_week": "Monday", "start_time": "09:00", "end_time": "10:00"}]
    )
    return doc


@pytest.fixture
def second_provider(db):
    """Dr. James Johnson, dermatology, Mondays 13:00-17:00."""
    user = db.create_user(
        email="james@clinic.test",
        full_name="Dr. James Johnson",
        role=Role.DOCTOR,
        specialty="Dermatology",
    )
    doc = db.get_provider_by_user(user.id)
    db.upsert_availability(
        doc.id, [{"day_of_week": "Monday", "start_time": "13:00", "end_time": "17:00"}]
    )
    return doc


@pytest.fixture
def patient(db):
    """Patient profile for Alice Patient."""
    user = db.create_user(
        email="alice@example.test", full_name="Alice Patient", role=Role.PATIENT
    )
    return db.get_patient_by_user(user.id)


@pytest.fixture
def other_patient(db):
    """A second patient."""
    user = db.create_user(
        email="bob@example.test", full_name="Bob Patient", role=Role.PATIENT
    )
    return db.get_patient_by_user(user.id)


@pytest.fixture
def mock_execute_prompt():
    """Patch the executor wherever services import it."""
    with (
        patch("medbook.services.extraction.execute_prompt") as extraction,
        patch("medbook.services.responder.execute_prompt") as responder,
        patch("medbook.scheduling.resolver.execute_prompt") as resolver,
    ):
        yield {"extraction": extraction, "responder": responder, "resolver": resolver}

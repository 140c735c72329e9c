from __future__ import annotations

import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("EVENT_BUS_BACKEND", "memory")
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from studioflow.core.config import get_config
from studioflow.database.db import enable_sqlite_transactions
from studioflow.events.bus import InMemoryEventBus, reset_event_bus
from studioflow.lifecycle.coordinator import TransitionCoordinator
from studioflow.models import Base
from studioflow.models.enums import FinancialDocumentStatus, SpecialStatus, StageStatus, UserRole
from studioflow.services.financial_document_service import FinancialDocumentService
from studioflow.services.project_service import ProjectService


class RecordingBus(InMemoryEventBus):
    """In-memory bus that also keeps every published message."""

    def __init__(self) -> None:
        super().__init__()
        self.published: list[tuple[str, dict]] = []

    def publish(self, topic: str, payload: dict) -> None:
        self.published.append((topic, payload))
        super().publish(topic, payload)


@pytest.fixture
def session_factory():
    engine = enable_sqlite_transactions(
        create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def bus():
    recording = RecordingBus()
    reset_event_bus(recording)
    yield recording
    reset_event_bus(None)


@pytest.fixture
def config():
    return get_config()


@pytest.fixture
def coordinator(db, bus, config):
    return TransitionCoordinator(db=db, bus=bus, config=config)


@pytest.fixture
def seed(db):
    """Factory creating a client, the system and editor users, and one project."""
    service = ProjectService(db=db)
    client = service.create_client("Aurora Films")
    service.create_user("system", role=UserRole.ADMIN)
    service.create_user("editor", role=UserRole.EDITOR)

    def _project(
        stage_status: StageStatus = StageStatus.PROPOSAL,
        special_status: SpecialStatus = SpecialStatus.NONE,
        budget: Decimal | int | None = 15000,
        payment_term_days: int | None = None,
        issue_date: datetime | None = datetime(2026, 3, 10, 8, 30, tzinfo=timezone.utc),
        end_date: datetime | None = None,
        name: str = "Brand documentary",
    ):
        return service.create_project(
            client_id=client.id,
            name=name,
            budget=budget,
            payment_term_days=payment_term_days,
            issue_date=issue_date,
            end_date=end_date,
            stage_status=stage_status,
            special_status=special_status,
        )

    return _project


@pytest.fixture
def add_document(db):
    """Attach a financial document to a project and commit it."""

    def _add(project, amount: int = 15000, paid: bool = False, status: FinancialDocumentStatus | None = None):
        document = FinancialDocumentService(db=db).create_document(
            project=project,
            amount=amount,
            due_date=datetime(2026, 4, 9, 12, tzinfo=timezone.utc),
            paid=paid,
        )
        if status is not None:
            document.status = status
        db.commit()
        return document

    return _add

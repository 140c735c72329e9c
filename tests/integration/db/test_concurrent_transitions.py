from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from studioflow.database.db import enable_sqlite_transactions
from studioflow.lifecycle.coordinator import TransitionCoordinator
from studioflow.models import Base, Project, StatusHistoryRecord
from studioflow.models.enums import StageStatus, StatusKind, UserRole
from studioflow.services.project_service import ProjectService


def test_concurrent_stage_updates_leave_state_matching_latest_history(tmp_path, bus, config):
    engine = enable_sqlite_transactions(
        create_engine(f"sqlite:///{tmp_path / 'concurrency.db'}", connect_args={"check_same_thread": False}),
        immediate=True,
    )
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

    with SessionLocal() as session:
        service = ProjectService(db=session)
        client = service.create_client("Nordlys")
        service.create_user("first", role=UserRole.EDITOR)
        service.create_user("second", role=UserRole.EDITOR)
        project_id = service.create_project(
            client_id=client.id,
            name="Festival trailer",
            stage_status=StageStatus.PRODUCTION,
        ).id

    def _apply(args):
        target, user_id = args
        with SessionLocal() as session:
            coordinator = TransitionCoordinator(db=session, bus=bus, config=config)
            return coordinator.update_stage_status(project_id, target, acting_user_id=user_id, confirmed=True)

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(_apply, [(StageStatus.POST_REVIEW, 1), (StageStatus.DELIVERED, 2)]))

    assert all(result.changed for result in results)
    with SessionLocal() as session:
        final_stage = session.get(Project, project_id).stage_status
        history = (
            session.query(StatusHistoryRecord)
            .filter(StatusHistoryRecord.project_id == project_id)
            .filter(StatusHistoryRecord.status_kind == StatusKind.STAGE)
            .order_by(StatusHistoryRecord.id)
            .all()
        )

    assert len(history) == 2
    assert final_stage.value == history[-1].new_status
    assert len([payload for _, payload in bus.published if payload["projectId"] == project_id]) == 2
    engine.dispose()

"""Project lookup and seeding helpers used around the lifecycle engine."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from studioflow.models import Client, Project, User
from studioflow.models.enums import SpecialStatus, StageStatus, UserRole
from studioflow.services.base_service import BaseService


class ProjectService(BaseService):
    """Service for reading projects and creating the rows they depend on."""

    def get_project(self, project_id: int, refresh: bool = False) -> Project | None:
        """Load a project; ``refresh`` bypasses the identity map to read the committed row."""
        return self.db.get(Project, project_id, populate_existing=refresh)

    def require_project(self, project_id: int, refresh: bool = False) -> Project:
        return self._require(Project, project_id, "Project", populate_existing=refresh)

    def create_client(self, name: str) -> Client:
        return self._save(Client(name=name))

    def create_user(self, name: str, role: UserRole = UserRole.EDITOR) -> User:
        return self._save(User(name=name, role=role))

    def create_project(
        self,
        client_id: int,
        name: str,
        budget: Decimal | int | float | None = None,
        payment_term_days: int | None = None,
        issue_date: datetime | None = None,
        end_date: datetime | None = None,
        stage_status: StageStatus = StageStatus.PROPOSAL,
        special_status: SpecialStatus = SpecialStatus.NONE,
    ) -> Project:
        return self._save(
            Project(
                client_id=client_id,
                name=name,
                budget=Decimal(str(budget)) if budget is not None else None,
                payment_term_days=payment_term_days,
                issue_date=issue_date,
                end_date=end_date,
                stage_status=stage_status,
                special_status=special_status,
            )
        )

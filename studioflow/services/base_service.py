"""Session-bound base for the row-level services."""

from __future__ import annotations

from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studioflow.core.exceptions import DatabaseError, NotFoundError
from studioflow.database.db import SessionLocal

ModelT = TypeVar("ModelT")


class BaseService:
    """Base class for services that operate on a SQLAlchemy session."""

    def __init__(self, db: Session | None = None) -> None:
        self.db = db or SessionLocal()

    def commit(self) -> None:
        """Commit the current transaction, rolling back when the flush fails."""
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise DatabaseError(f"Commit failed: {exc}") from exc

    def _require(self, model: type[ModelT], ident: Any, label: str, **options: Any) -> ModelT:
        instance = self.db.get(model, ident, **options)
        if instance is None:
            raise NotFoundError(f"{label} not found: {ident}")
        return instance

    def _save(self, instance: ModelT) -> ModelT:
        self.db.add(instance)
        self.commit()
        self.db.refresh(instance)
        return instance

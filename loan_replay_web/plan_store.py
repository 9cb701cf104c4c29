"""Persistence layer for saved payment plans.

A plan is stored as its original loan terms plus its operation log, both as
JSON. Schedules and summaries are never stored: they are replayed from those
two pieces whenever a plan is loaded. SQLite is the default for local
development, but any SQLAlchemy-compatible URL (e.g. PostgreSQL/MySQL) works.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from loan_replay.data_models import LoanInput, Operation
from loan_replay.operations import PaymentPlan
from loan_replay.serialization import (
    loan_input_from_dict,
    loan_input_to_dict,
    operation_from_dict,
    operation_to_dict,
)

Base = declarative_base()


class PlanModel(Base):
    __tablename__ = "payment_plans"

    id = Column(String(64), primary_key=True)
    user_token = Column(String(64), index=True, nullable=False)
    name = Column(String(255), nullable=False)
    loan_json = Column(Text, nullable=False)
    operations_json = Column(Text, nullable=False, default="[]")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class PlanStore:
    """Database-backed plan store."""

    def __init__(self, url: str, *, max_per_user: int = 10) -> None:
        self._engine = create_engine(url, future=True)
        Base.metadata.create_all(self._engine)
        self._session_factory = sessionmaker(self._engine, expire_on_commit=False, future=True)
        self._max_per_user = max_per_user

    def list_plans(self, user_token: str) -> List[Dict[str, Any]]:
        if not user_token:
            return []
        with self._session_factory() as session:
            rows: Iterable[PlanModel] = session.execute(
                select(PlanModel)
                .where(PlanModel.user_token == user_token)
                .order_by(PlanModel.created_at.asc())
            ).scalars()
            return [self._to_dict(row) for row in rows]

    def add_plan(self, user_token: str, plan_id: str, name: str, loan_input: LoanInput) -> None:
        if not user_token:
            return
        payload = PlanModel(
            id=plan_id,
            user_token=user_token,
            name=name,
            loan_json=json.dumps(loan_input_to_dict(loan_input)),
            operations_json="[]",
        )
        with self._session_factory() as session:
            session.add(payload)
            session.commit()
        self._trim_user(user_token)

    def load_plan(self, user_token: str, plan_id: str) -> Optional[PaymentPlan]:
        """Rebuild a plan by replaying its stored operation log."""
        if not user_token:
            return None
        with self._session_factory() as session:
            row = session.get(PlanModel, plan_id)
            if row is None or row.user_token != user_token:
                return None
            loan_input = loan_input_from_dict(json.loads(row.loan_json))
            operations = [operation_from_dict(op) for op in json.loads(row.operations_json)]
        return PaymentPlan(loan_input, operations)

    def save_operations(self, user_token: str, plan_id: str, operations: List[Operation]) -> bool:
        if not user_token:
            return False
        with self._session_factory() as session:
            row = session.get(PlanModel, plan_id)
            if row is None or row.user_token != user_token:
                return False
            row.operations_json = json.dumps([operation_to_dict(op) for op in operations])
            session.commit()
        return True

    def remove_plan(self, user_token: str, plan_id: str) -> bool:
        if not user_token:
            return False
        with self._session_factory() as session:
            row = session.get(PlanModel, plan_id)
            if row and row.user_token == user_token:
                session.delete(row)
                session.commit()
                return True
        return False

    def _trim_user(self, user_token: str) -> None:
        if not self._max_per_user or self._max_per_user < 0:
            return
        with self._session_factory() as session:
            rows = session.execute(
                select(PlanModel)
                .where(PlanModel.user_token == user_token)
                .order_by(PlanModel.created_at.desc())
            ).scalars().all()
            if len(rows) <= self._max_per_user:
                return
            for row in rows[self._max_per_user :]:
                session.delete(row)
            session.commit()

    @staticmethod
    def _to_dict(row: PlanModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "name": row.name,
            "loan": json.loads(row.loan_json),
            "operation_count": len(json.loads(row.operations_json)),
            "created_at": row.created_at.isoformat(),
        }


def create_store_from_env(url: str | None, max_per_user: int = 10) -> PlanStore:
    return PlanStore(url or "sqlite:///payment_plans.sqlite3", max_per_user=max_per_user)

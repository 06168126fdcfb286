"""
Analysis job persistence.

The orchestrator reports progress through ``update_job_status``; the CLI
reads jobs back with ``get_job`` / ``list_jobs``. Writes are
last-writer-wins: a job cancelled mid-run can still be overwritten by the
run's final write.
"""

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from trade_analyst.exceptions import JobNotFoundError, JobStateError
from trade_analyst.models import AnalysisJob, AnalysisType, JobStatus, ToolCall, TradeRecommendation
from trade_analyst.storage.database import Database
from trade_analyst.storage.models import AnalysisJobRecord

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "status",
        "progress",
        "current_step",
        "tools_called",
        "initial_analysis",
        "critique",
        "final_result",
        "error",
    }
)


def _serialize(name: str, value: Any) -> Any:
    if value is None:
        return None
    if name == "status":
        return JobStatus.from_string(value.value if isinstance(value, JobStatus) else value).value
    if name == "tools_called":
        return [tc.to_dict() if isinstance(tc, ToolCall) else tc for tc in value]
    if name == "final_result" and isinstance(value, TradeRecommendation):
        return value.to_dict()
    if name == "progress":
        return max(0, min(100, int(value)))
    return value


def _to_job(record: AnalysisJobRecord) -> AnalysisJob:
    return AnalysisJob(
        id=record.id,
        symbol=record.symbol,
        analysis_type=AnalysisType.from_string(record.analysis_type),
        user_id=record.user_id,
        status=JobStatus.from_string(record.status),
        progress=record.progress or 0,
        current_step=record.current_step,
        tools_called=[ToolCall.from_dict(tc) for tc in record.tools_called or []],
        initial_analysis=record.initial_analysis,
        critique=record.critique,
        final_result=TradeRecommendation.from_dict(record.final_result) if record.final_result else None,
        error=record.error,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class JobStore:
    """CRUD over the ``analysis_jobs`` table."""

    def __init__(self, database: Database):
        self.db = database

    def create_job(
        self, symbol: str, analysis_type: AnalysisType | str, user_id: str = "local"
    ) -> AnalysisJob:
        kind = analysis_type if isinstance(analysis_type, AnalysisType) else AnalysisType.from_string(analysis_type)
        now = datetime.now()
        record = AnalysisJobRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            symbol=symbol.strip().upper(),
            analysis_type=kind.value,
            status=JobStatus.PENDING.value,
            progress=0,
            tools_called=[],
            created_at=now,
            updated_at=now,
        )
        with self.db.session() as session:
            session.add(record)
        logger.info(f"[JobStore] Created job {record.id} ({record.symbol}, {kind.value})")
        return _to_job(record)

    def get_job(self, job_id: str) -> AnalysisJob:
        with self.db.session() as session:
            record = session.get(AnalysisJobRecord, job_id)
            if record is None:
                raise JobNotFoundError(f"Job {job_id} not found")
            return _to_job(record)

    def list_jobs(self, limit: int = 20, user_id: str | None = None) -> list[AnalysisJob]:
        with self.db.session() as session:
            query = session.query(AnalysisJobRecord)
            if user_id:
                query = query.filter(AnalysisJobRecord.user_id == user_id)
            records = query.order_by(AnalysisJobRecord.created_at.desc()).limit(limit).all()
            return [_to_job(r) for r in records]

    def update_job_status(self, job_id: str, **fields: Any) -> bool:
        """
        Apply any subset of job fields and refresh ``updated_at``.

        Failures are logged and reported as False so progress reporting
        never breaks an analysis run.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown job fields: {', '.join(sorted(unknown))}")

        try:
            with self.db.session() as session:
                record = session.get(AnalysisJobRecord, job_id)
                if record is None:
                    logger.error(f"[JobStore] Update for missing job {job_id}")
                    return False
                for name, value in fields.items():
                    setattr(record, name, _serialize(name, value))
                record.updated_at = datetime.now()
        except SQLAlchemyError as e:
            logger.error(f"[JobStore] Failed to update job {job_id}: {e}")
            return False
        return True

    def cancel_job(self, job_id: str) -> AnalysisJob:
        """Mark a pending or running job cancelled; a running analysis is not interrupted."""
        with self.db.session() as session:
            record = session.get(AnalysisJobRecord, job_id)
            if record is None:
                raise JobNotFoundError(f"Job {job_id} not found")
            status = JobStatus.from_string(record.status)
            if not status.is_cancellable:
                raise JobStateError(f"Cannot cancel job in {status.value} state")
            record.status = JobStatus.CANCELLED.value
            record.current_step = "Cancelled"
            record.updated_at = datetime.now()
            logger.info(f"[JobStore] Cancelled job {job_id}")
            return _to_job(record)

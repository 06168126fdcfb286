"""Persistence layer: SQLAlchemy database, job and prediction stores, ORM models."""

from trade_analyst.storage.database import Database
from trade_analyst.storage.job_store import JobStore
from trade_analyst.storage.models import AnalysisJobRecord, Base, KnowledgeDocument, PredictionRecord
from trade_analyst.storage.prediction_store import PredictionStore

__all__ = [
    "Database",
    "JobStore",
    "PredictionStore",
    "AnalysisJobRecord",
    "Base",
    "KnowledgeDocument",
    "PredictionRecord",
]

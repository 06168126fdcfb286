"""SQLAlchemy ORM models for analysis jobs, knowledge base documents and backtest predictions."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class AnalysisJobRecord(Base):
    """
    One requested analysis run.

    JSON columns hold the tool-call audit trail and the final
    recommendation; ``critique`` is stored as serialized JSON text.
    """

    __tablename__ = "analysis_jobs"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(64), nullable=False, default="local", index=True)

    symbol = Column(String(20), nullable=False, index=True)
    analysis_type = Column(String(20), nullable=False)

    status = Column(String(20), nullable=False, default="pending", index=True)
    progress = Column(Integer, nullable=False, default=0)
    current_step = Column(String(255))

    tools_called = Column(JSON, default=list)
    initial_analysis = Column(Text)
    critique = Column(Text)
    final_result = Column(JSON)
    error = Column(Text)

    created_at = Column(DateTime, default=datetime.now, index=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (Index("ix_jobs_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return f"<AnalysisJobRecord(id={self.id}, symbol={self.symbol}, status={self.status})>"


class KnowledgeDocument(Base):
    """A knowledge base chunk with its embedding vector."""

    __tablename__ = "knowledge_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    kb_type = Column(String(10), nullable=False, default="stock", index=True)
    content = Column(Text, nullable=False)
    doc_metadata = Column("metadata", JSON, default=dict)
    embedding = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.now)

    def __repr__(self) -> str:
        return f"<KnowledgeDocument(id={self.id}, kb_type={self.kb_type}, len={len(self.content or '')})>"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kb_type": self.kb_type,
            "content": self.content,
            "metadata": self.doc_metadata or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class PredictionRecord(Base):
    """A trade call awaiting, or scored by, backtest evaluation."""

    __tablename__ = "predictions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_id = Column(String(36), nullable=False, unique=True)
    user_id = Column(String(64), nullable=False, default="local", index=True)

    symbol = Column(String(20), nullable=False, index=True)
    analysis_type = Column(String(20), nullable=False)
    predicted_direction = Column(String(10), nullable=False)
    confidence = Column(Integer, nullable=False, default=0)
    timeframe = Column(String(50))
    options_strategy = Column(String(50))

    entry_price = Column(Float, nullable=False)
    target_price = Column(Float, nullable=False)
    stop_loss = Column(Float, nullable=False)
    tp1_price = Column(Float)
    tp2_price = Column(Float)
    tp3_price = Column(Float)

    prediction_date = Column(DateTime, nullable=False)
    expiry_date = Column(DateTime, nullable=False)

    status = Column(String(10), nullable=False, default="pending", index=True)
    actual_exit_price = Column(Float)
    actual_exit_date = Column(DateTime)
    pnl_percent = Column(Float)
    hit_target = Column(Boolean, default=False)
    hit_stop = Column(Boolean, default=False)
    hit_tp1 = Column(Boolean, default=False)
    hit_tp2 = Column(Boolean, default=False)
    hit_tp3 = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.now, index=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    def __repr__(self) -> str:
        return f"<PredictionRecord(id={self.id}, symbol={self.symbol}, status={self.status})>"

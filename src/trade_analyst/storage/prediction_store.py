"""Persistence for backtest predictions."""

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from trade_analyst.exceptions import StorageError
from trade_analyst.models import Direction, Prediction, PredictionOutcome, PredictionStatus
from trade_analyst.storage.database import Database
from trade_analyst.storage.models import PredictionRecord

logger = logging.getLogger(__name__)


def _to_prediction(record: PredictionRecord) -> Prediction:
    return Prediction(
        id=record.id,
        job_id=record.job_id,
        user_id=record.user_id,
        symbol=record.symbol,
        analysis_type=record.analysis_type,
        direction=Direction(record.predicted_direction),
        entry_price=record.entry_price,
        target_price=record.target_price,
        stop_loss=record.stop_loss,
        confidence=record.confidence or 0,
        timeframe=record.timeframe or "",
        prediction_date=record.prediction_date,
        expiry_date=record.expiry_date,
        status=PredictionStatus.from_string(record.status),
        tp1_price=record.tp1_price,
        tp2_price=record.tp2_price,
        tp3_price=record.tp3_price,
        options_strategy=record.options_strategy,
        exit_price=record.actual_exit_price,
        exit_date=record.actual_exit_date,
        pnl_percent=record.pnl_percent,
        hit_target=bool(record.hit_target),
        hit_stop=bool(record.hit_stop),
        hit_tp1=bool(record.hit_tp1),
        hit_tp2=bool(record.hit_tp2),
        hit_tp3=bool(record.hit_tp3),
    )


class PredictionStore:
    """CRUD over the ``predictions`` table; one prediction per job."""

    def __init__(self, database: Database):
        self.db = database

    def add(self, prediction: Prediction) -> Prediction:
        """Insert a prediction, or return the existing one for the same job."""
        existing = self.get_by_job(prediction.job_id)
        if existing is not None:
            logger.debug(f"[Backtest] Job {prediction.job_id} already has prediction {existing.id}")
            return existing

        record = PredictionRecord(
            job_id=prediction.job_id,
            user_id=prediction.user_id,
            symbol=prediction.symbol,
            analysis_type=prediction.analysis_type,
            predicted_direction=prediction.direction.value,
            confidence=prediction.confidence,
            timeframe=prediction.timeframe,
            options_strategy=prediction.options_strategy,
            entry_price=prediction.entry_price,
            target_price=prediction.target_price,
            stop_loss=prediction.stop_loss,
            tp1_price=prediction.tp1_price,
            tp2_price=prediction.tp2_price,
            tp3_price=prediction.tp3_price,
            prediction_date=prediction.prediction_date,
            expiry_date=prediction.expiry_date,
            status=prediction.status.value,
        )
        try:
            with self.db.session() as session:
                session.add(record)
                session.flush()
                saved = _to_prediction(record)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save prediction for job {prediction.job_id}: {e}") from e
        return saved

    def get_by_job(self, job_id: str) -> Prediction | None:
        with self.db.session() as session:
            record = session.query(PredictionRecord).filter(PredictionRecord.job_id == job_id).one_or_none()
            return _to_prediction(record) if record else None

    def list_predictions(
        self,
        status: PredictionStatus | None = None,
        symbol: str | None = None,
        analysis_type: str | None = None,
        days: int | None = None,
        user_id: str | None = None,
        limit: int | None = None,
    ) -> list[Prediction]:
        """Newest first, optionally filtered."""
        with self.db.session() as session:
            query = session.query(PredictionRecord)
            if status is not None:
                query = query.filter(PredictionRecord.status == status.value)
            if symbol:
                query = query.filter(PredictionRecord.symbol == symbol.strip().upper())
            if analysis_type:
                query = query.filter(PredictionRecord.analysis_type == analysis_type)
            if days:
                query = query.filter(PredictionRecord.prediction_date >= datetime.now() - timedelta(days=days))
            if user_id:
                query = query.filter(PredictionRecord.user_id == user_id)
            query = query.order_by(PredictionRecord.prediction_date.desc(), PredictionRecord.id.desc())
            if limit:
                query = query.limit(limit)
            return [_to_prediction(r) for r in query.all()]

    def record_outcome(self, prediction_id: int, outcome: PredictionOutcome, exit_date: datetime | None = None) -> bool:
        try:
            with self.db.session() as session:
                record = session.get(PredictionRecord, prediction_id)
                if record is None:
                    logger.error(f"[Backtest] Outcome for missing prediction {prediction_id}")
                    return False
                record.status = outcome.status.value
                record.actual_exit_price = outcome.exit_price
                record.actual_exit_date = exit_date or datetime.now()
                record.pnl_percent = outcome.pnl_percent
                record.hit_target = outcome.hit_target
                record.hit_stop = outcome.hit_stop
                record.hit_tp1 = outcome.hit_tp1
                record.hit_tp2 = outcome.hit_tp2
                record.hit_tp3 = outcome.hit_tp3
        except SQLAlchemyError as e:
            logger.error(f"[Backtest] Failed to record outcome for prediction {prediction_id}: {e}")
            return False
        return True

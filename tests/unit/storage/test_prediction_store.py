"""Tests for PredictionStore."""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from trade_analyst.exceptions import StorageError
from trade_analyst.models import Direction, Prediction, PredictionOutcome, PredictionStatus
from trade_analyst.storage import Database, PredictionStore


@pytest.fixture
def store():
    return PredictionStore(Database("sqlite://"))


def _prediction(job_id="job-1", symbol="AAPL", analysis_type="stock", prediction_date=None) -> Prediction:
    made = prediction_date or datetime.now()
    return Prediction(
        job_id=job_id,
        symbol=symbol,
        analysis_type=analysis_type,
        direction=Direction.BULLISH,
        entry_price=100.0,
        target_price=110.0,
        stop_loss=95.0,
        confidence=72,
        timeframe="2 weeks",
        prediction_date=made,
        expiry_date=made + timedelta(weeks=2),
    )


class TestPredictionStore:
    def test_add_and_get(self, store):
        """A saved prediction comes back with an id and pending status."""
        saved = store.add(_prediction())

        loaded = store.get_by_job("job-1")
        assert saved.id is not None
        assert loaded == saved
        assert loaded.status == PredictionStatus.PENDING
        assert loaded.direction == Direction.BULLISH

    def test_one_prediction_per_job(self, store):
        """Adding for a job that already has a prediction returns the stored one."""
        first = store.add(_prediction())
        second = store.add(_prediction())

        assert second.id == first.id
        assert len(store.list_predictions()) == 1

    def test_get_missing(self, store):
        """Unknown jobs have no prediction."""
        assert store.get_by_job("missing") is None

    def test_list_filters_and_order(self, store):
        """Newest first, filtered by symbol, type, age and status."""
        now = datetime.now()
        store.add(_prediction("old", prediction_date=now - timedelta(days=40)))
        store.add(_prediction("new", prediction_date=now - timedelta(days=1)))
        store.add(_prediction("fx", symbol="EUR/USD", analysis_type="forex", prediction_date=now))

        assert [p.job_id for p in store.list_predictions()] == ["fx", "new", "old"]
        assert [p.job_id for p in store.list_predictions(symbol=" aapl ")] == ["new", "old"]
        assert [p.job_id for p in store.list_predictions(analysis_type="forex")] == ["fx"]
        assert [p.job_id for p in store.list_predictions(days=30)] == ["fx", "new"]
        assert [p.job_id for p in store.list_predictions(limit=1)] == ["fx"]
        assert store.list_predictions(status=PredictionStatus.WON) == []

    def test_record_outcome(self, store):
        """The outcome fields are written back and the prediction leaves pending."""
        saved = store.add(_prediction())
        exit_date = datetime(2025, 3, 5, 16, 0)
        outcome = PredictionOutcome(status=PredictionStatus.WON, exit_price=111.0, pnl_percent=11.0, hit_target=True)

        assert store.record_outcome(saved.id, outcome, exit_date)

        loaded = store.get_by_job("job-1")
        assert loaded.status == PredictionStatus.WON
        assert loaded.exit_price == 111.0
        assert loaded.exit_date == exit_date
        assert loaded.pnl_percent == 11.0
        assert loaded.hit_target and not loaded.hit_stop
        assert store.list_predictions(status=PredictionStatus.PENDING) == []

    def test_record_outcome_for_missing_prediction(self, store):
        """Scoring an unknown prediction reports False."""
        outcome = PredictionOutcome(status=PredictionStatus.LOST, exit_price=90.0, pnl_percent=-10.0)

        assert store.record_outcome(999, outcome) is False

    def test_add_wraps_database_errors(self, store, monkeypatch):
        """SQLAlchemy failures surface as StorageError."""

        def broken_session():
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        monkeypatch.setattr(store, "get_by_job", lambda job_id: None)
        monkeypatch.setattr(store.db, "session", broken_session)

        with pytest.raises(StorageError, match="Failed to save prediction for job job-1"):
            store.add(_prediction())

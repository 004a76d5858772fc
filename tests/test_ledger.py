"""Tests for the ACD model run ledger."""

from datetime import date, datetime, timezone

import pytest

from acdpanel.domain import InnovationFamily
from acdpanel.errors import ReferentialError, RejectionKind, ValidationError
from acdpanel.store import PanelStore
from factories import make_pool, make_run


class TestRecord:
    """Tests for ModelRunLedger.record."""

    async def test_valid_run_recorded(self, ledger, pool_id):
        run_id = await ledger.record(make_run(pool_id, p=1, q=1))
        record = await ledger.get(run_id)
        assert record.pool_id == pool_id
        assert record.innovation_type is InnovationFamily.EXPONENTIAL
        assert record.theta_hat == (0.05, 0.1, 0.8)
        assert record.cond_exp_duration_lags == (10.0,)

    async def test_unknown_pool_checked_first(self, ledger):
        # Also malformed, but the pool reference is checked before invariants
        with pytest.raises(ReferentialError) as exc_info:
            await ledger.record(make_run(pool_id=42, duration_coefs=[1.0, 2.0]))
        assert exc_info.value.kind is RejectionKind.UNKNOWN_POOL

    @pytest.mark.parametrize("field", ["intercept", "log_likelihood_max", "status", "est_end_date"])
    async def test_missing_required_value_is_validation_error(self, ledger, pool_id, field):
        with pytest.raises(ValidationError) as exc_info:
            await ledger.record(make_run(pool_id, **{field: None}))
        assert exc_info.value.kind is RejectionKind.EMPTY_FIELD
        assert exc_info.value.field == field
        assert await ledger.latest_for_pool(pool_id) is None

    async def test_vector_mismatch_reports_field(self, ledger, pool_id):
        with pytest.raises(ValidationError) as exc_info:
            await ledger.record(make_run(pool_id, p=1, q=1, duration_coefs=[0.05, 0.03]))
        err = exc_info.value
        assert err.kind is RejectionKind.VECTOR_LENGTH_MISMATCH
        assert err.details == {"field": "duration_coefs", "expected": 1, "actual": 2}
        assert await ledger.latest_for_pool(pool_id) is None

    async def test_generalized_gamma_stored_with_canonical_label(self, ledger, pool_id):
        run_id = await ledger.record(
            make_run(
                pool_id,
                innovation_type="generalized-gamma",
                gen_gamma_shape_d=1.3,
                gen_gamma_shape_p=0.9,
            )
        )
        record = await ledger.get(run_id)
        assert record.innovation_type is InnovationFamily.GENERALIZED_GAMMA
        assert record.innovation_type.value == "generalized gamma"
        assert record.weibull_shape is None

    async def test_identical_runs_are_not_deduplicated(self, ledger, pool_id):
        candidate = make_run(pool_id)
        first = await ledger.record(candidate)
        second = await ledger.record(candidate)
        assert first != second
        assert len(await ledger.runs_for_pool(pool_id).to_list()) == 2

    async def test_get_unknown_run(self, ledger):
        assert await ledger.get(7) is None


class TestLatestForPool:
    """Tests for ModelRunLedger.latest_for_pool."""

    async def test_latest_by_creation_time(self, ledger, pool_id, other_pool_id):
        await ledger.record(make_run(pool_id))
        latest = await ledger.record(make_run(pool_id, p=2, q=1))
        await ledger.record(make_run(other_pool_id))
        assert await ledger.latest_for_pool(pool_id) == latest

    async def test_ties_broken_by_insertion_order(self, engine):
        frozen = datetime(2024, 6, 1, tzinfo=timezone.utc)
        store = PanelStore.from_engine(engine, clock=lambda: frozen)
        ledger = store.ledger
        pool_id = await store.registry.register(make_pool())
        await ledger.record(make_run(pool_id))
        later = await ledger.record(make_run(pool_id))
        assert await ledger.latest_for_pool(pool_id) == later

    async def test_no_runs(self, ledger, pool_id):
        assert await ledger.latest_for_pool(pool_id) is None


class TestRunsInWindow:
    """Tests for ModelRunLedger.runs_in_window."""

    async def test_filtered_and_ordered_by_estimation_start(self, ledger, pool_id, other_pool_id):
        march = await ledger.record(make_run(pool_id, est_start_date=date(2024, 3, 1), est_end_date=date(2024, 6, 1)))
        january = await ledger.record(make_run(pool_id, est_start_date=date(2024, 1, 1), est_end_date=date(2024, 6, 1)))
        await ledger.record(make_run(pool_id, est_start_date=date(2023, 6, 1), est_end_date=date(2024, 6, 1)))
        await ledger.record(make_run(other_pool_id, est_start_date=date(2024, 2, 1), est_end_date=date(2024, 6, 1)))

        window = ledger.runs_in_window(pool_id, date(2024, 1, 1))
        assert await window.to_list() == [january, march]

    async def test_stream_is_restartable_and_live(self, ledger, pool_id):
        window = ledger.runs_in_window(pool_id, date(2024, 1, 1))
        assert await window.to_list() == []

        run_id = await ledger.record(make_run(pool_id))
        first = [r async for r in window]
        second = [r async for r in window]
        assert first == second == [run_id]

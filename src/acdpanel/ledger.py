"""
ACD model run ledger.

Every successful ACD(p, q) fit is appended as an immutable run. Runs are
never deduplicated: re-fits, alternative specifications and different
estimation windows for the same pool all coexist.
"""

import asyncio
from datetime import date

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from acdpanel.domain import Clock, InnovationFamily, ModelRunCandidate, ModelRunRecord, utc_now
from acdpanel.errors import PanelError, ReferentialError, RejectionKind, log_rejection, storage_errors
from acdpanel.models.model_run import AcdModelRun
from acdpanel.registry import PoolRegistry
from acdpanel.streams import QueryStream
from acdpanel.validation import validate_model_run

logger = structlog.get_logger()


def _to_record(row: AcdModelRun) -> ModelRunRecord:
    return ModelRunRecord(
        acd_model_run_id=row.acd_model_run_id,
        pool_id=row.pool_id,
        cond_exp_duration_order=row.cond_exp_duration_order,
        duration_order=row.duration_order,
        innovation_type=InnovationFamily(row.innovation_type),
        weibull_shape=row.weibull_shape,
        gen_gamma_shape_d=row.gen_gamma_shape_d,
        gen_gamma_shape_p=row.gen_gamma_shape_p,
        duration_time_units=row.duration_time_units,
        diurnal_adjusted=row.diurnal_adjusted,
        data_length=row.data_length,
        intercept=row.est_intercept,
        duration_coefs=tuple(row.est_duration_coefs),
        cond_exp_duration_coefs=tuple(row.est_cond_exp_duration_coefs),
        stationarity_margin_slack=row.stationarity_margin_slack,
        cond_exp_duration_lags=tuple(row.est_cond_exp_duration_lags),
        theta_hat=tuple(row.theta_hat),
        log_likelihood_max=row.log_likelihood_max,
        status=row.status,
        num_iterations=row.num_iterations,
        final_gradient_norm=row.final_gradient_norm,
        est_start_date=row.est_start_date,
        est_end_date=row.est_end_date,
        created_at=row.created_at,
    )


class ModelRunLedger:
    """Owns the acd_model_runs record set."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: PoolRegistry,
        clock: Clock = utc_now,
    ):
        self._session_factory = session_factory
        self._registry = registry
        self._clock = clock
        self._lock = asyncio.Lock()

    async def record(self, candidate: ModelRunCandidate) -> int:
        """
        Validate and append a fitted ACD model.

        The pool reference is checked first, then the run invariants in a
        fixed order; the first violation is raised.

        Args:
            candidate: Fitted model to record

        Returns:
            The new acd_model_run_id

        Raises:
            ReferentialError: UnknownPool
            ValidationError: orders, family/shape pairing, metadata, vector
                lengths, numeric bounds or estimation window are invalid
            StorageError: the database failed
        """
        try:
            if not await self._registry.exists(candidate.pool_id):
                raise ReferentialError(
                    RejectionKind.UNKNOWN_POOL, "unknown pool", field="pool_id", pool_id=candidate.pool_id
                )
            family = validate_model_run(candidate)
            async with self._lock:
                run_id = await self._append(candidate, family)
        except PanelError as e:
            log_rejection(logger, "Model run rejected", e, pool_id=candidate.pool_id)
            raise

        logger.info(
            "Model run recorded",
            run_id=run_id,
            pool_id=candidate.pool_id,
            p=candidate.p,
            q=candidate.q,
            innovation=family.value,
            log_likelihood=candidate.log_likelihood_max,
            status=candidate.status,
        )
        return run_id

    async def _append(self, candidate: ModelRunCandidate, family: InnovationFamily) -> int:
        async with storage_errors("record model run"):
            async with self._session_factory() as session:
                row = AcdModelRun(
                    pool_id=candidate.pool_id,
                    cond_exp_duration_order=candidate.cond_exp_duration_order,
                    duration_order=candidate.duration_order,
                    innovation_type=family.value,
                    weibull_shape=candidate.weibull_shape,
                    gen_gamma_shape_d=candidate.gen_gamma_shape_d,
                    gen_gamma_shape_p=candidate.gen_gamma_shape_p,
                    duration_time_units=candidate.duration_time_units,
                    diurnal_adjusted=candidate.diurnal_adjusted,
                    data_length=candidate.data_length,
                    est_intercept=candidate.intercept,
                    est_duration_coefs=list(candidate.duration_coefs),
                    est_cond_exp_duration_coefs=list(candidate.cond_exp_duration_coefs),
                    stationarity_margin_slack=candidate.stationarity_margin_slack,
                    est_cond_exp_duration_lags=list(candidate.cond_exp_duration_lags),
                    theta_hat=list(candidate.theta_hat),
                    log_likelihood_max=candidate.log_likelihood_max,
                    status=candidate.status,
                    num_iterations=candidate.num_iterations,
                    final_gradient_norm=candidate.final_gradient_norm,
                    est_start_date=candidate.est_start_date,
                    est_end_date=candidate.est_end_date,
                    created_at=self._clock(),
                )
                session.add(row)
                await session.commit()
                return row.acd_model_run_id

    async def get(self, run_id: int) -> ModelRunRecord | None:
        async with storage_errors("get model run"):
            async with self._session_factory() as session:
                row = await session.get(AcdModelRun, run_id)
                return _to_record(row) if row is not None else None

    async def latest_for_pool(self, pool_id: int) -> int | None:
        """Most recently created run for the pool; later insertion wins ties."""
        stmt = (
            select(AcdModelRun.acd_model_run_id)
            .where(AcdModelRun.pool_id == pool_id)
            .order_by(AcdModelRun.created_at.desc(), AcdModelRun.acd_model_run_id.desc())
            .limit(1)
        )
        async with storage_errors("latest model run"):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return result.scalar_one_or_none()

    def runs_in_window(self, pool_id: int, start: date) -> QueryStream[int]:
        """
        Run ids for the pool whose estimation starts on or after ``start``.

        Ordered by estimation start ascending (insertion order within a day).
        The returned stream is lazy and can be iterated repeatedly.
        """
        stmt = (
            select(AcdModelRun.acd_model_run_id)
            .where(AcdModelRun.pool_id == pool_id, AcdModelRun.est_start_date >= start)
            .order_by(AcdModelRun.est_start_date.asc(), AcdModelRun.acd_model_run_id.asc())
        )
        return QueryStream(self._session_factory, stmt, int, "runs in window")

    def runs_for_pool(self, pool_id: int) -> QueryStream[ModelRunRecord]:
        """All runs for the pool in insertion order."""
        stmt = (
            select(AcdModelRun)
            .where(AcdModelRun.pool_id == pool_id)
            .order_by(AcdModelRun.acd_model_run_id.asc())
        )
        return QueryStream(self._session_factory, stmt, _to_record, "runs for pool")

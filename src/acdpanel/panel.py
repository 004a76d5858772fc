"""
Daily metrics panel: one observation per (pool, trading date, data version).

Corrections never overwrite history. A revised observation is appended
under a higher ``data_version``; the live row for a (pool, date) is the one
with the highest version, and reads can be pinned to a specific version.
"""

import asyncio
from dataclasses import asdict
from datetime import date

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from acdpanel.config import settings
from acdpanel.domain import (
    METRIC_VALUE_FIELDS,
    Clock,
    MetricCandidate,
    MetricObservation,
    ObservationKey,
    utc_now,
)
from acdpanel.errors import (
    ConflictError,
    PanelError,
    ReferentialError,
    RejectionKind,
    log_rejection,
    storage_errors,
)
from acdpanel.ledger import ModelRunLedger
from acdpanel.models.metrics import PoolDailyMetric
from acdpanel.registry import PoolRegistry
from acdpanel.streams import QueryStream
from acdpanel.validation import validate_data_version, validate_metric_values

logger = structlog.get_logger()


def _to_observation(row: PoolDailyMetric) -> MetricObservation:
    return MetricObservation(
        pool_id=row.pool_id,
        trading_date=row.trading_date,
        data_version=row.data_version,
        created_at=row.created_at,
        acd_model_run_id=row.acd_model_run_id,
        **{name: getattr(row, name) for name in METRIC_VALUE_FIELDS},
    )


def _live_rows(*filters):
    """SELECT of the highest data_version row per (pool, date) matching filters."""
    latest = (
        select(
            PoolDailyMetric.pool_id,
            PoolDailyMetric.trading_date,
            func.max(PoolDailyMetric.data_version).label("data_version"),
        )
        .where(*filters)
        .group_by(PoolDailyMetric.pool_id, PoolDailyMetric.trading_date)
        .subquery()
    )
    return select(PoolDailyMetric).join(
        latest,
        and_(
            PoolDailyMetric.pool_id == latest.c.pool_id,
            PoolDailyMetric.trading_date == latest.c.trading_date,
            PoolDailyMetric.data_version == latest.c.data_version,
        ),
    )


def _rows(*filters, data_version: int | None = None):
    if data_version is None:
        return _live_rows(*filters)
    return select(PoolDailyMetric).where(*filters, PoolDailyMetric.data_version == data_version)


class MetricsPanel:
    """Owns the pool_daily_metrics record set."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: PoolRegistry,
        ledger: ModelRunLedger,
        clock: Clock = utc_now,
    ):
        self._session_factory = session_factory
        self._registry = registry
        self._ledger = ledger
        self._clock = clock
        self._lock = asyncio.Lock()

    async def observe(self, candidate: MetricCandidate) -> ObservationKey:
        """
        Validate and append one daily observation.

        Checks run in order: pool reference, optional model run link
        (must exist and belong to the same pool), non-negativity of present
        fields, data version, then (pool, date, version) identity.

        Returns:
            The key of the stored observation

        Raises:
            ReferentialError: UnknownPool, UnknownRun or CrossPoolRunLink
            ValidationError: NegativeField or NonPositiveDataVersion
            ConflictError: DuplicateObservation
            StorageError: the database failed
        """
        version = candidate.data_version
        if version is None:
            version = settings.default_data_version
        key = ObservationKey(candidate.pool_id, candidate.trading_date, version)

        try:
            await self._check_references(candidate)
            validate_metric_values(candidate)
            validate_data_version(version)
            async with self._lock:
                await self._append(candidate, key)
        except PanelError as e:
            log_rejection(
                logger,
                "Observation rejected",
                e,
                pool_id=candidate.pool_id,
                trading_date=candidate.trading_date,
                data_version=version,
            )
            raise

        logger.info(
            "Observation stored",
            pool_id=key.pool_id,
            trading_date=key.trading_date,
            data_version=key.data_version,
            acd_model_run_id=candidate.acd_model_run_id,
        )
        return key

    async def _check_references(self, candidate: MetricCandidate) -> None:
        if not await self._registry.exists(candidate.pool_id):
            raise ReferentialError(
                RejectionKind.UNKNOWN_POOL, "unknown pool", field="pool_id", pool_id=candidate.pool_id
            )

        run_id = candidate.acd_model_run_id
        if run_id is None:
            return
        run = await self._ledger.get(run_id)
        if run is None:
            raise ReferentialError(
                RejectionKind.UNKNOWN_RUN, "unknown model run", field="acd_model_run_id", run_id=run_id
            )
        if run.pool_id != candidate.pool_id:
            raise ReferentialError(
                RejectionKind.CROSS_POOL_RUN_LINK,
                "model run belongs to a different pool",
                field="acd_model_run_id",
                run_id=run_id,
                run_pool_id=run.pool_id,
            )

    async def _append(self, candidate: MetricCandidate, key: ObservationKey) -> None:
        values = asdict(candidate)
        async with storage_errors("observe"):
            async with self._session_factory() as session:
                await self._check_identity(session, key)
                session.add(
                    PoolDailyMetric(
                        pool_id=key.pool_id,
                        trading_date=key.trading_date,
                        data_version=key.data_version,
                        acd_model_run_id=candidate.acd_model_run_id,
                        created_at=self._clock(),
                        **{name: values[name] for name in METRIC_VALUE_FIELDS},
                    )
                )
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    await self._check_identity(session, key)
                    raise

    @staticmethod
    async def _check_identity(session: AsyncSession, key: ObservationKey) -> None:
        result = await session.execute(
            select(PoolDailyMetric.pool_id).where(
                PoolDailyMetric.pool_id == key.pool_id,
                PoolDailyMetric.trading_date == key.trading_date,
                PoolDailyMetric.data_version == key.data_version,
            )
        )
        if result.first() is not None:
            raise ConflictError(
                RejectionKind.DUPLICATE_OBSERVATION,
                "observation already stored for (pool, date, version)",
                pool_id=key.pool_id,
                trading_date=key.trading_date,
                data_version=key.data_version,
            )

    async def get(
        self, pool_id: int, trading_date: date, data_version: int | None = None
    ) -> MetricObservation | None:
        """Live (or pinned-version) observation for one pool-day."""
        stmt = _rows(
            PoolDailyMetric.pool_id == pool_id,
            PoolDailyMetric.trading_date == trading_date,
            data_version=data_version,
        )
        async with storage_errors("get observation"):
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()
                return _to_observation(row) if row is not None else None

    async def versions(self, pool_id: int, trading_date: date) -> list[int]:
        """All stored data versions for one pool-day, ascending."""
        stmt = (
            select(PoolDailyMetric.data_version)
            .where(PoolDailyMetric.pool_id == pool_id, PoolDailyMetric.trading_date == trading_date)
            .order_by(PoolDailyMetric.data_version.asc())
        )
        async with storage_errors("observation versions"):
            async with self._session_factory() as session:
                return list((await session.execute(stmt)).scalars())

    def panel_for_pool(
        self,
        pool_id: int,
        start: date | None = None,
        end: date | None = None,
        data_version: int | None = None,
    ) -> QueryStream[MetricObservation]:
        """
        Observations for one pool over an inclusive date range, date ascending.

        Open bounds are unbounded. Without ``data_version`` the live row of
        each day is returned.
        """
        filters = [PoolDailyMetric.pool_id == pool_id]
        if start is not None:
            filters.append(PoolDailyMetric.trading_date >= start)
        if end is not None:
            filters.append(PoolDailyMetric.trading_date <= end)
        stmt = _rows(*filters, data_version=data_version).order_by(PoolDailyMetric.trading_date.asc())
        return QueryStream(self._session_factory, stmt, _to_observation, "panel for pool")

    def cross_section(
        self, trading_date: date, data_version: int | None = None
    ) -> QueryStream[MetricObservation]:
        """All pools' observations for one date, pool id ascending."""
        stmt = _rows(PoolDailyMetric.trading_date == trading_date, data_version=data_version).order_by(
            PoolDailyMetric.pool_id.asc()
        )
        return QueryStream(self._session_factory, stmt, _to_observation, "cross section")

"""
Pool registry: canonical DEX pool identities.

Pools are appended once and never deleted. The only mutation is
administrative retirement, which changes the sample window and the
in-main-sample flag.
"""

import asyncio

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from acdpanel.domain import Clock, PoolCandidate, PoolRecord, SampleWindowUpdate, utc_now
from acdpanel.errors import (
    ConflictError,
    PanelError,
    ReferentialError,
    RejectionKind,
    log_rejection,
    storage_errors,
)
from acdpanel.models.pool import DexPool
from acdpanel.validation import normalize_address, validate_pool, validate_sample_window

logger = structlog.get_logger()


def _to_record(row: DexPool) -> PoolRecord:
    return PoolRecord(
        pool_id=row.pool_id,
        chain_name=row.chain_name,
        dex_name=row.dex_name,
        pool_address=row.pool_address,
        token_a_symbol=row.token_a_symbol,
        token_b_symbol=row.token_b_symbol,
        token_a_address=row.token_a_address,
        token_b_address=row.token_b_address,
        pair_symbol=row.pair_symbol,
        fee_tier=row.fee_tier,
        is_in_main_sample=row.is_in_main_sample,
        sample_start_date=row.sample_start_date,
        sample_end_date=row.sample_end_date,
        created_at=row.created_at,
    )


class PoolRegistry:
    """Owns the dex_pools record set."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock = utc_now,
    ):
        self._session_factory = session_factory
        self._clock = clock
        # Serializes check-then-append; storage UNIQUE constraints are the backstop
        self._lock = asyncio.Lock()

    async def register(self, candidate: PoolCandidate) -> int:
        """
        Validate and append a pool.

        Args:
            candidate: Pool to register

        Returns:
            The new pool_id

        Raises:
            ValidationError: a structural invariant is violated
            ConflictError: address or (chain, pair, fee tier) already registered
            StorageError: the database failed
        """
        try:
            validate_pool(candidate)
            async with self._lock:
                pool_id = await self._append(candidate)
        except PanelError as e:
            log_rejection(logger, "Pool rejected", e, pool_address=candidate.pool_address)
            raise

        logger.info(
            "Pool registered",
            pool_id=pool_id,
            chain=candidate.chain_name,
            dex=candidate.dex_name,
            pair=candidate.pair_symbol,
            fee_tier=candidate.fee_tier,
        )
        return pool_id

    async def _append(self, candidate: PoolCandidate) -> int:
        async with storage_errors("register pool"):
            async with self._session_factory() as session:
                await self._check_unique(session, candidate)

                row = DexPool(
                    chain_name=candidate.chain_name,
                    dex_name=candidate.dex_name,
                    pool_address=candidate.pool_address,
                    pool_address_key=normalize_address(candidate.pool_address),
                    token_a_symbol=candidate.token_a_symbol,
                    token_b_symbol=candidate.token_b_symbol,
                    token_a_address=candidate.token_a_address,
                    token_b_address=candidate.token_b_address,
                    pair_symbol=candidate.pair_symbol,
                    fee_tier=candidate.fee_tier,
                    is_in_main_sample=candidate.is_in_main_sample,
                    sample_start_date=candidate.sample_start_date,
                    sample_end_date=candidate.sample_end_date,
                    created_at=self._clock(),
                )
                session.add(row)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    # Lost a race against another writer: report which key collided
                    await self._check_unique(session, candidate)
                    raise
                return row.pool_id

    async def _check_unique(self, session: AsyncSession, candidate: PoolCandidate) -> None:
        existing = await self._find_by_address(session, candidate.pool_address)
        if existing is not None:
            raise ConflictError(
                RejectionKind.DUPLICATE_ADDRESS,
                "pool address already registered",
                field="pool_address",
                pool_id=existing,
            )

        existing = await self._find_by_business_key(
            session, candidate.chain_name, candidate.pair_symbol, candidate.fee_tier
        )
        if existing is not None:
            raise ConflictError(
                RejectionKind.DUPLICATE_BUSINESS_KEY,
                "(chain, pair, fee tier) already registered",
                pool_id=existing,
                chain_name=candidate.chain_name,
                pair_symbol=candidate.pair_symbol,
                fee_tier=candidate.fee_tier,
            )

    async def retire(self, pool_id: int, update: SampleWindowUpdate) -> PoolRecord:
        """
        Change a pool's sample window and/or in-main-sample flag.

        Raises:
            ReferentialError: NotFound if the pool id is unknown
            ValidationError: the merged window would be inverted
        """
        try:
            async with self._lock:
                async with storage_errors("retire pool"):
                    async with self._session_factory() as session:
                        row = await session.get(DexPool, pool_id)
                        if row is None:
                            raise ReferentialError(
                                RejectionKind.NOT_FOUND, "unknown pool", pool_id=pool_id
                            )

                        start = update.sample_start_date or row.sample_start_date
                        end = update.sample_end_date or row.sample_end_date
                        validate_sample_window(start, end)

                        row.sample_start_date = start
                        row.sample_end_date = end
                        if update.is_in_main_sample is not None:
                            row.is_in_main_sample = update.is_in_main_sample
                        await session.commit()
                        record = _to_record(row)
        except PanelError as e:
            log_rejection(logger, "Pool retirement rejected", e, pool_id=pool_id)
            raise

        logger.info(
            "Pool sample window updated",
            pool_id=pool_id,
            in_main_sample=record.is_in_main_sample,
            sample_start=record.sample_start_date,
            sample_end=record.sample_end_date,
        )
        return record

    async def exists(self, pool_id: int) -> bool:
        async with storage_errors("pool exists"):
            async with self._session_factory() as session:
                result = await session.execute(
                    select(DexPool.pool_id).where(DexPool.pool_id == pool_id)
                )
                return result.scalar_one_or_none() is not None

    async def get(self, pool_id: int) -> PoolRecord | None:
        async with storage_errors("get pool"):
            async with self._session_factory() as session:
                row = await session.get(DexPool, pool_id)
                return _to_record(row) if row is not None else None

    async def lookup_by_business_key(self, chain_name: str, pair_symbol: str, fee_tier: int) -> int | None:
        """Pool id for (chain, pair label, fee tier), or None."""
        async with storage_errors("lookup pool by business key"):
            async with self._session_factory() as session:
                return await self._find_by_business_key(session, chain_name, pair_symbol, fee_tier)

    async def lookup_by_address(self, pool_address: str) -> int | None:
        """Pool id for a contract address (case-insensitive), or None."""
        async with storage_errors("lookup pool by address"):
            async with self._session_factory() as session:
                return await self._find_by_address(session, pool_address)

    @staticmethod
    async def _find_by_address(session: AsyncSession, pool_address: str) -> int | None:
        result = await session.execute(
            select(DexPool.pool_id).where(DexPool.pool_address_key == normalize_address(pool_address))
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _find_by_business_key(
        session: AsyncSession, chain_name: str, pair_symbol: str, fee_tier: int
    ) -> int | None:
        result = await session.execute(
            select(DexPool.pool_id).where(
                DexPool.chain_name == chain_name,
                DexPool.pair_symbol == pair_symbol,
                DexPool.fee_tier == fee_tier,
            )
        )
        return result.scalar_one_or_none()


"""Wiring of the three panel components over one database."""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from acdpanel.domain import Clock, utc_now
from acdpanel.ledger import ModelRunLedger
from acdpanel.models.base import create_sessionmaker
from acdpanel.panel import MetricsPanel
from acdpanel.registry import PoolRegistry


@dataclass
class PanelStore:
    """Pool registry, model run ledger and metrics panel sharing one session factory."""

    registry: PoolRegistry
    ledger: ModelRunLedger
    panel: MetricsPanel

    @classmethod
    def from_sessionmaker(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock = utc_now,
    ) -> "PanelStore":
        registry = PoolRegistry(session_factory, clock=clock)
        ledger = ModelRunLedger(session_factory, registry, clock=clock)
        panel = MetricsPanel(session_factory, registry, ledger, clock=clock)
        return cls(registry=registry, ledger=ledger, panel=panel)

    @classmethod
    def from_engine(cls, engine: AsyncEngine, clock: Clock = utc_now) -> "PanelStore":
        return cls.from_sessionmaker(create_sessionmaker(engine), clock=clock)

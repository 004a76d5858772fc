"""Storage models for the ACD panel."""

from .base import Base, create_engine, create_sessionmaker
from .metrics import PoolDailyMetric
from .model_run import AcdModelRun
from .pool import DexPool

__all__ = [
    "AcdModelRun",
    "Base",
    "DexPool",
    "PoolDailyMetric",
    "create_engine",
    "create_sessionmaker",
]

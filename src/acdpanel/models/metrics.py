"""Daily pool metrics panel table."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    PrimaryKeyConstraint,
)

from .base import Base


class PoolDailyMetric(Base):
    """
    One daily observation of spreads, regressors and ACD intensity for a pool.

    Identity is (pool_id, trading_date, data_version): a correction is a new
    row under a higher data_version, never an update of the older one.
    """

    __tablename__ = "pool_daily_metrics"

    pool_id = Column(Integer, ForeignKey("dex_pools.pool_id"), nullable=False)
    trading_date = Column(Date, nullable=False, index=True)
    data_version = Column(Integer, nullable=False, default=1)

    # Targets
    v3_spread_bps = Column(Float, nullable=True)
    cf_v2_spread_bps = Column(Float, nullable=True)
    v3_over_cf_v2_ratio = Column(Float, nullable=True)

    # Pool level regressors
    tvl_usd = Column(Float, nullable=True)
    fee_revenue_over_tvl = Column(Float, nullable=True)
    markout_over_tvl = Column(Float, nullable=True)

    # Pair level regressors
    pair_log_return = Column(Float, nullable=True)
    pair_vol_annualized = Column(Float, nullable=True)

    # Chain level regressors
    gas_price_usd = Column(Float, nullable=True)
    dex_competition_ratio = Column(Float, nullable=True)
    internalization_ratio_all_aggs = Column(Float, nullable=True)

    # ACD
    acd_model_run_id = Column(Integer, ForeignKey("acd_model_runs.acd_model_run_id"), nullable=True)
    acd_intensity_per_minute = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("pool_id", "trading_date", "data_version", name="pdm_pkey"),
        CheckConstraint("data_version > 0", name="pdm_data_version_positive"),
        CheckConstraint(
            "v3_spread_bps >= 0 AND cf_v2_spread_bps >= 0 AND v3_over_cf_v2_ratio >= 0",
            name="pdm_v3_spread_bps_non_negative",
        ),
        CheckConstraint(
            "tvl_usd >= 0 AND fee_revenue_over_tvl >= 0 AND markout_over_tvl >= 0",
            name="pdm_pool_regressors_non_negative",
        ),
        CheckConstraint("pair_vol_annualized >= 0", name="pdm_pair_regressors_non_negative"),
        CheckConstraint(
            "gas_price_usd >= 0 AND dex_competition_ratio >= 0 AND internalization_ratio_all_aggs >= 0",
            name="pdm_chain_regressors_non_negative",
        ),
        CheckConstraint("acd_intensity_per_minute >= 0", name="pdm_acd_intensity_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<PoolDailyMetric(pool={self.pool_id}, date={self.trading_date}, v={self.data_version})>"

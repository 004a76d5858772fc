"""
Candidate and record types for pools, ACD model runs and daily observations.

Candidates are what callers submit; records are frozen snapshots of rows that
have already been accepted. Numeric vectors are normalised to tuples of
floats on construction so an accepted record never aliases caller state.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass, fields
from datetime import date, datetime, timezone
from enum import Enum
from typing import Callable, Iterable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def _as_vector(values: Iterable[float] | None) -> tuple[float, ...]:
    if values is None:
        return ()
    return tuple(float(v) for v in values)


def _as_int(value):
    """Plain int for integer-like values (numpy.int64 and friends); others pass through."""
    if value is None or isinstance(value, bool):
        return value
    try:
        return operator.index(value)
    except TypeError:
        return value


class InnovationFamily(str, Enum):
    """Innovation distribution assumed for the ACD errors."""

    EXPONENTIAL = "exponential"
    WEIBULL = "weibull"
    GENERALIZED_GAMMA = "generalized gamma"

    @classmethod
    def parse(cls, value: str | InnovationFamily) -> InnovationFamily | None:
        """Resolve a label to a family, or None if it names no known family."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        label = value.strip().lower().replace("-", " ").replace("_", " ")
        for family in cls:
            if family.value == label:
                return family
        return None


# =============================================================================
# Pools
# =============================================================================


@dataclass(frozen=True)
class PoolCandidate:
    """A DEX pool submitted for registration."""

    chain_name: str
    dex_name: str
    pool_address: str
    token_a_symbol: str
    token_b_symbol: str
    token_a_address: str
    token_b_address: str
    pair_symbol: str
    fee_tier: int  # basis points
    is_in_main_sample: bool = True
    sample_start_date: date | None = None
    sample_end_date: date | None = None

    def __post_init__(self):
        object.__setattr__(self, "fee_tier", _as_int(self.fee_tier))

    @classmethod
    def from_tokens(
        cls,
        chain_name: str,
        dex_name: str,
        pool_address: str,
        token_a_symbol: str,
        token_b_symbol: str,
        token_a_address: str,
        token_b_address: str,
        fee_tier: int,
        **kwargs,
    ) -> PoolCandidate:
        """Build a candidate whose pair label is derived from the token symbols."""
        return cls(
            chain_name=chain_name,
            dex_name=dex_name,
            pool_address=pool_address,
            token_a_symbol=token_a_symbol,
            token_b_symbol=token_b_symbol,
            token_a_address=token_a_address,
            token_b_address=token_b_address,
            pair_symbol=f"{token_a_symbol}-{token_b_symbol}",
            fee_tier=fee_tier,
            **kwargs,
        )


@dataclass(frozen=True)
class SampleWindowUpdate:
    """Administrative change to a pool's sample window; None leaves a field as is."""

    is_in_main_sample: bool | None = None
    sample_start_date: date | None = None
    sample_end_date: date | None = None


@dataclass(frozen=True)
class PoolRecord:
    """Snapshot of a registered pool."""

    pool_id: int
    chain_name: str
    dex_name: str
    pool_address: str
    token_a_symbol: str
    token_b_symbol: str
    token_a_address: str
    token_b_address: str
    pair_symbol: str
    fee_tier: int
    is_in_main_sample: bool
    sample_start_date: date | None
    sample_end_date: date | None
    created_at: datetime


# =============================================================================
# ACD model runs
# =============================================================================


@dataclass(frozen=True)
class ModelRunCandidate:
    """
    One fitted ACD(p, q) model submitted for recording.

    p = cond_exp_duration_order (lags of psi), q = duration_order (lags of x).
    theta_hat is ordered [omega, alpha..., beta...].
    """

    pool_id: int
    cond_exp_duration_order: int
    duration_order: int
    innovation_type: str | InnovationFamily
    duration_time_units: str
    data_length: int
    intercept: float
    duration_coefs: tuple[float, ...]
    cond_exp_duration_coefs: tuple[float, ...]
    stationarity_margin_slack: float
    cond_exp_duration_lags: tuple[float, ...]
    theta_hat: tuple[float, ...]
    log_likelihood_max: float
    status: str
    est_start_date: date
    est_end_date: date
    weibull_shape: float | None = None
    gen_gamma_shape_d: float | None = None
    gen_gamma_shape_p: float | None = None
    diurnal_adjusted: bool = True
    num_iterations: int | None = None
    final_gradient_norm: float | None = None

    def __post_init__(self):
        for name in ("cond_exp_duration_order", "duration_order", "data_length", "num_iterations"):
            object.__setattr__(self, name, _as_int(getattr(self, name)))
        for name in VECTOR_FIELDS:
            object.__setattr__(self, name, _as_vector(getattr(self, name)))

    @property
    def p(self) -> int:
        return self.cond_exp_duration_order

    @property
    def q(self) -> int:
        return self.duration_order


VECTOR_FIELDS = (
    "duration_coefs",
    "cond_exp_duration_coefs",
    "cond_exp_duration_lags",
    "theta_hat",
)


@dataclass(frozen=True)
class ModelRunRecord:
    """Snapshot of a recorded ACD model run."""

    acd_model_run_id: int
    pool_id: int
    cond_exp_duration_order: int
    duration_order: int
    innovation_type: InnovationFamily
    weibull_shape: float | None
    gen_gamma_shape_d: float | None
    gen_gamma_shape_p: float | None
    duration_time_units: str
    diurnal_adjusted: bool
    data_length: int
    intercept: float
    duration_coefs: tuple[float, ...]
    cond_exp_duration_coefs: tuple[float, ...]
    stationarity_margin_slack: float
    cond_exp_duration_lags: tuple[float, ...]
    theta_hat: tuple[float, ...]
    log_likelihood_max: float
    status: str
    num_iterations: int | None
    final_gradient_norm: float | None
    est_start_date: date
    est_end_date: date
    created_at: datetime


# =============================================================================
# Daily metrics
# =============================================================================


@dataclass(frozen=True)
class MetricCandidate:
    """One (pool, trading date) daily observation submitted for ingestion."""

    pool_id: int
    trading_date: date

    # Targets
    v3_spread_bps: float | None = None
    cf_v2_spread_bps: float | None = None
    v3_over_cf_v2_ratio: float | None = None

    # Pool level regressors
    tvl_usd: float | None = None
    fee_revenue_over_tvl: float | None = None
    markout_over_tvl: float | None = None

    # Pair level regressors
    pair_log_return: float | None = None
    pair_vol_annualized: float | None = None

    # Chain level regressors
    gas_price_usd: float | None = None
    dex_competition_ratio: float | None = None
    internalization_ratio_all_aggs: float | None = None

    # ACD link
    acd_model_run_id: int | None = None
    acd_intensity_per_minute: float | None = None

    # None means settings.default_data_version
    data_version: int | None = None

    def __post_init__(self):
        object.__setattr__(self, "data_version", _as_int(self.data_version))


# Fields that must be >= 0 when present, in declaration order.
# pair_log_return is a signed log return and is not listed.
NON_NEGATIVE_METRIC_FIELDS = (
    "v3_spread_bps",
    "cf_v2_spread_bps",
    "v3_over_cf_v2_ratio",
    "tvl_usd",
    "fee_revenue_over_tvl",
    "markout_over_tvl",
    "pair_vol_annualized",
    "gas_price_usd",
    "dex_competition_ratio",
    "internalization_ratio_all_aggs",
    "acd_intensity_per_minute",
)

METRIC_VALUE_FIELDS = tuple(
    f.name
    for f in fields(MetricCandidate)
    if f.name not in ("pool_id", "trading_date", "acd_model_run_id", "data_version")
)


@dataclass(frozen=True)
class ObservationKey:
    """Addressable identity of a stored observation."""

    pool_id: int
    trading_date: date
    data_version: int


@dataclass(frozen=True)
class MetricObservation:
    """Snapshot of a stored daily observation."""

    pool_id: int
    trading_date: date
    data_version: int
    created_at: datetime
    v3_spread_bps: float | None = None
    cf_v2_spread_bps: float | None = None
    v3_over_cf_v2_ratio: float | None = None
    tvl_usd: float | None = None
    fee_revenue_over_tvl: float | None = None
    markout_over_tvl: float | None = None
    pair_log_return: float | None = None
    pair_vol_annualized: float | None = None
    gas_price_usd: float | None = None
    dex_competition_ratio: float | None = None
    internalization_ratio_all_aggs: float | None = None
    acd_model_run_id: int | None = None
    acd_intensity_per_minute: float | None = None

    @property
    def key(self) -> ObservationKey:
        return ObservationKey(self.pool_id, self.trading_date, self.data_version)

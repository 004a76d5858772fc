"""
Structural and numeric invariants for pools, ACD model runs and observations.

Each validator is a pure function of the candidate. It raises a
ValidationError for the first rule violated, in a fixed order, and returns
nothing on success. Referential and uniqueness checks need storage and live
in the owning components.
"""

from datetime import date

from acdpanel.domain import (
    NON_NEGATIVE_METRIC_FIELDS,
    InnovationFamily,
    MetricCandidate,
    ModelRunCandidate,
    PoolCandidate,
)
from acdpanel.errors import RejectionKind, ValidationError


def _is_blank(value: str | None) -> bool:
    return value is None or not str(value).strip()


def _fold(value: str) -> str:
    return value.strip().lower()


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _require(candidate, *names: str) -> None:
    for name in names:
        if getattr(candidate, name) is None:
            raise ValidationError(RejectionKind.EMPTY_FIELD, f"{name} is missing", field=name)


def normalize_address(address: str) -> str:
    """Case-insensitive comparison key for on-chain addresses."""
    return _fold(address)


# =============================================================================
# Pools
# =============================================================================


def validate_sample_window(start: date | None, end: date | None) -> None:
    """Both bounds present => start strictly precedes end."""
    if start is not None and end is not None and not start < end:
        raise ValidationError(
            RejectionKind.INVERTED_SAMPLE_WINDOW,
            "sample_start_date must precede sample_end_date",
            start=start,
            end=end,
        )


def validate_pool(candidate: PoolCandidate) -> None:
    """Check every pool invariant that does not depend on other pools."""
    for name in (
        "chain_name",
        "dex_name",
        "token_a_symbol",
        "token_b_symbol",
        "token_a_address",
        "token_b_address",
        "pool_address",
    ):
        if _is_blank(getattr(candidate, name)):
            raise ValidationError(RejectionKind.EMPTY_FIELD, f"{name} is empty", field=name)
    _require(candidate, "is_in_main_sample")

    if _fold(candidate.token_a_symbol) == _fold(candidate.token_b_symbol):
        raise ValidationError(
            RejectionKind.INDISTINCT_TOKENS,
            "token symbols must differ",
            field="token_symbols",
        )
    if _fold(candidate.token_a_address) == _fold(candidate.token_b_address):
        raise ValidationError(
            RejectionKind.INDISTINCT_TOKENS,
            "token addresses must differ",
            field="token_addresses",
        )

    expected = f"{candidate.token_a_symbol}-{candidate.token_b_symbol}"
    if candidate.pair_symbol != expected:
        raise ValidationError(
            RejectionKind.INVALID_PAIR_LABEL,
            "pair_symbol must be '<token_a_symbol>-<token_b_symbol>'",
            field="pair_symbol",
            expected=expected,
            actual=candidate.pair_symbol,
        )

    if not _is_int(candidate.fee_tier) or candidate.fee_tier <= 0:
        raise ValidationError(
            RejectionKind.NON_POSITIVE_FEE_TIER,
            "fee_tier must be a positive integer (bps)",
            field="fee_tier",
            actual=candidate.fee_tier,
        )

    validate_sample_window(candidate.sample_start_date, candidate.sample_end_date)


# =============================================================================
# ACD model runs
# =============================================================================


def _check_orders(p, q) -> None:
    valid = (
        _is_int(p)
        and _is_int(q)
        and p >= 0
        and q >= 0
        and p + q > 0
    )
    if not valid:
        raise ValidationError(
            RejectionKind.INVALID_ORDERS,
            "orders must satisfy p >= 0, q >= 0, p + q > 0",
            p=p,
            q=q,
        )


def _check_shapes(family: InnovationFamily, candidate: ModelRunCandidate) -> None:
    weibull = candidate.weibull_shape
    gg_d, gg_p = candidate.gen_gamma_shape_d, candidate.gen_gamma_shape_p

    if family is InnovationFamily.WEIBULL:
        ok = weibull is not None and weibull > 0 and gg_d is None and gg_p is None
    elif family is InnovationFamily.GENERALIZED_GAMMA:
        ok = (
            weibull is None
            and gg_d is not None
            and gg_p is not None
            and gg_d > 0
            and gg_p > 0
        )
    else:
        ok = weibull is None and gg_d is None and gg_p is None

    if not ok:
        raise ValidationError(
            RejectionKind.SHAPE_PARAMETER_MISMATCH,
            f"shape parameters do not match the {family.value} family",
            innovation_type=family.value,
            weibull_shape=weibull,
            gen_gamma_shape_d=gg_d,
            gen_gamma_shape_p=gg_p,
        )


def _check_length(name: str, vector: tuple[float, ...], expected: int) -> None:
    if len(vector) != expected:
        raise ValidationError(
            RejectionKind.VECTOR_LENGTH_MISMATCH,
            f"{name} has the wrong length",
            field=name,
            expected=expected,
            actual=len(vector),
        )


def validate_model_run(candidate: ModelRunCandidate) -> InnovationFamily:
    """
    Check every model run invariant and return the resolved innovation family.

    Order: orders, innovation family, shape parameters, metadata, vector
    lengths, numeric positivity, estimation window. Missing required
    values are EmptyField. NaN fails every sign check.
    """
    p, q = candidate.cond_exp_duration_order, candidate.duration_order
    _check_orders(p, q)

    family = InnovationFamily.parse(candidate.innovation_type)
    if family is None:
        raise ValidationError(
            RejectionKind.INVALID_INNOVATION_FAMILY,
            "innovation_type must be exponential, weibull or generalized gamma",
            field="innovation_type",
            actual=candidate.innovation_type,
        )
    _check_shapes(family, candidate)

    if _is_blank(candidate.duration_time_units):
        raise ValidationError(
            RejectionKind.EMPTY_UNITS_LABEL,
            "duration_time_units is empty",
            field="duration_time_units",
        )
    if candidate.data_length is None or not candidate.data_length > 0:
        raise ValidationError(
            RejectionKind.NON_POSITIVE_SAMPLE_LENGTH,
            "data_length must be positive",
            field="data_length",
            actual=candidate.data_length,
        )
    _require(candidate, "diurnal_adjusted", "intercept", "log_likelihood_max")
    if _is_blank(candidate.status):
        raise ValidationError(RejectionKind.EMPTY_FIELD, "status is empty", field="status")

    _check_length("duration_coefs", candidate.duration_coefs, q)
    _check_length("cond_exp_duration_coefs", candidate.cond_exp_duration_coefs, p)
    _check_length("cond_exp_duration_lags", candidate.cond_exp_duration_lags, p)
    _check_length("theta_hat", candidate.theta_hat, 1 + p + q)

    if candidate.stationarity_margin_slack is None or not candidate.stationarity_margin_slack > 0:
        raise ValidationError(
            RejectionKind.NON_POSITIVE_SLACK,
            "stationarity_margin_slack must be positive",
            field="stationarity_margin_slack",
            actual=candidate.stationarity_margin_slack,
        )
    if candidate.num_iterations is not None and not candidate.num_iterations > 0:
        raise ValidationError(
            RejectionKind.NON_POSITIVE_ITERATION_COUNT,
            "num_iterations must be positive when present",
            field="num_iterations",
            actual=candidate.num_iterations,
        )
    if candidate.final_gradient_norm is not None and not candidate.final_gradient_norm >= 0:
        raise ValidationError(
            RejectionKind.NEGATIVE_GRADIENT_NORM,
            "final_gradient_norm must be non-negative when present",
            field="final_gradient_norm",
            actual=candidate.final_gradient_norm,
        )

    _require(candidate, "est_start_date", "est_end_date")
    if not candidate.est_start_date < candidate.est_end_date:
        raise ValidationError(
            RejectionKind.INVERTED_ESTIMATION_WINDOW,
            "est_start_date must precede est_end_date",
            start=candidate.est_start_date,
            end=candidate.est_end_date,
        )

    return family


# =============================================================================
# Daily observations
# =============================================================================


def validate_metric_values(candidate: MetricCandidate) -> None:
    """Every present non-negativity-checked field is >= 0 (NaN is not); absent is allowed."""
    for name in NON_NEGATIVE_METRIC_FIELDS:
        value = getattr(candidate, name)
        if value is not None and not value >= 0:
            raise ValidationError(
                RejectionKind.NEGATIVE_FIELD,
                f"{name} must be non-negative",
                field=name,
                actual=value,
            )


def validate_data_version(version: int) -> None:
    if not _is_int(version) or version <= 0:
        raise ValidationError(
            RejectionKind.NON_POSITIVE_DATA_VERSION,
            "data_version must be a positive integer",
            field="data_version",
            actual=version,
        )

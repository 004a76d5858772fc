"""Tests for the pure record validators."""

from datetime import date

import pytest

from acdpanel.domain import InnovationFamily, ModelRunCandidate
from acdpanel.errors import RejectionKind, ValidationError
from acdpanel.validation import (
    validate_data_version,
    validate_metric_values,
    validate_model_run,
    validate_pool,
)
from factories import USDC, WETH, make_metric, make_pool, make_run


def rejection(validator, candidate) -> ValidationError:
    with pytest.raises(ValidationError) as exc_info:
        validator(candidate)
    return exc_info.value


class TestPoolInvariants:
    """Tests for validate_pool."""

    def test_valid_pool_passes(self):
        validate_pool(make_pool())

    @pytest.mark.parametrize(
        "field",
        ["chain_name", "dex_name", "pool_address", "token_a_address", "token_b_address"],
    )
    def test_blank_fields_rejected(self, field):
        err = rejection(validate_pool, make_pool(**{field: "   "}))
        assert err.kind is RejectionKind.EMPTY_FIELD
        assert err.field == field

    def test_blank_token_symbol_rejected_before_pair_label(self):
        err = rejection(validate_pool, make_pool(token_b_symbol="", pair_symbol="WETH-"))
        assert err.kind is RejectionKind.EMPTY_FIELD
        assert err.field == "token_b_symbol"

    def test_token_symbols_compared_case_insensitively(self):
        err = rejection(validate_pool, make_pool(token_b_symbol="weth", pair_symbol="WETH-weth"))
        assert err.kind is RejectionKind.INDISTINCT_TOKENS
        assert err.field == "token_symbols"

    def test_token_addresses_compared_case_insensitively(self):
        err = rejection(validate_pool, make_pool(token_b_address=WETH.lower()))
        assert err.kind is RejectionKind.INDISTINCT_TOKENS
        assert err.field == "token_addresses"

    @pytest.mark.parametrize("label", ["WETH/USDC", "USDC-WETH", "weth-usdc", "WETH - USDC"])
    def test_pair_label_must_match_exactly(self, label):
        err = rejection(validate_pool, make_pool(pair_symbol=label))
        assert err.kind is RejectionKind.INVALID_PAIR_LABEL
        assert err.details["expected"] == "WETH-USDC"

    @pytest.mark.parametrize("fee", [0, -5])
    def test_fee_tier_must_be_positive(self, fee):
        err = rejection(validate_pool, make_pool(fee_tier=fee))
        assert err.kind is RejectionKind.NON_POSITIVE_FEE_TIER

    def test_sample_window_must_be_ordered(self):
        err = rejection(
            validate_pool,
            make_pool(sample_start_date=date(2024, 6, 1), sample_end_date=date(2024, 6, 1)),
        )
        assert err.kind is RejectionKind.INVERTED_SAMPLE_WINDOW

    def test_open_sample_window_allowed(self):
        validate_pool(make_pool(sample_start_date=date(2024, 6, 1)))
        validate_pool(make_pool(sample_end_date=date(2020, 1, 1)))

    def test_from_tokens_derives_pair_label(self):
        candidate = make_pool()
        derived = type(candidate).from_tokens(
            chain_name="ethereum",
            dex_name="uniswap",
            pool_address="0xpool",
            token_a_symbol="WETH",
            token_b_symbol="USDC",
            token_a_address=WETH,
            token_b_address=USDC,
            fee_tier=30,
        )
        assert derived.pair_symbol == "WETH-USDC"
        validate_pool(derived)


class TestModelRunOrders:
    """Tests for ACD order and innovation family checks."""

    @pytest.mark.parametrize("p, q", [(1, 1), (0, 1), (1, 0), (2, 3)])
    def test_valid_orders(self, p, q):
        assert validate_model_run(make_run(p=p, q=q)) is InnovationFamily.EXPONENTIAL

    @pytest.mark.parametrize("p, q", [(0, 0), (-1, 2), (2, -1)])
    def test_invalid_orders(self, p, q):
        candidate = make_run(p=max(p, 0), q=max(q, 0), cond_exp_duration_order=p, duration_order=q)
        err = rejection(validate_model_run, candidate)
        assert err.kind is RejectionKind.INVALID_ORDERS

    def test_unknown_family(self):
        err = rejection(validate_model_run, make_run(innovation_type="lognormal"))
        assert err.kind is RejectionKind.INVALID_INNOVATION_FAMILY

    @pytest.mark.parametrize("label", ["generalized gamma", "generalized-gamma", "Generalized_Gamma"])
    def test_generalized_gamma_aliases(self, label):
        candidate = make_run(innovation_type=label, gen_gamma_shape_d=1.2, gen_gamma_shape_p=0.8)
        assert validate_model_run(candidate) is InnovationFamily.GENERALIZED_GAMMA


class TestShapeParameters:
    """Tests for innovation family / shape parameter pairing."""

    def test_weibull_with_positive_shape(self):
        assert validate_model_run(make_run(innovation_type="weibull", weibull_shape=0.7)) is InnovationFamily.WEIBULL

    @pytest.mark.parametrize(
        "overrides",
        [
            dict(innovation_type="weibull"),
            dict(innovation_type="weibull", weibull_shape=0.0),
            dict(innovation_type="weibull", weibull_shape=0.7, gen_gamma_shape_d=1.0),
            dict(innovation_type="generalized gamma", gen_gamma_shape_d=1.0),
            dict(innovation_type="generalized gamma", gen_gamma_shape_d=1.0, gen_gamma_shape_p=-0.5),
            dict(innovation_type="generalized gamma", gen_gamma_shape_d=1.0, gen_gamma_shape_p=0.5, weibull_shape=1.0),
            dict(innovation_type="exponential", weibull_shape=1.0),
            dict(innovation_type="exponential", gen_gamma_shape_p=1.0),
        ],
    )
    def test_mismatched_shapes(self, overrides):
        err = rejection(validate_model_run, make_run(**overrides))
        assert err.kind is RejectionKind.SHAPE_PARAMETER_MISMATCH


class TestModelRunMetadata:
    """Tests for unit label and sample length."""

    def test_blank_units_label(self):
        err = rejection(validate_model_run, make_run(duration_time_units="  "))
        assert err.kind is RejectionKind.EMPTY_UNITS_LABEL

    @pytest.mark.parametrize("length", [0, -10])
    def test_non_positive_sample_length(self, length):
        err = rejection(validate_model_run, make_run(data_length=length))
        assert err.kind is RejectionKind.NON_POSITIVE_SAMPLE_LENGTH


class TestVectorLengths:
    """Tests for the (p, q) shape contract on parameter vectors."""

    def test_alpha_length(self):
        err = rejection(validate_model_run, make_run(p=1, q=1, duration_coefs=[0.05, 0.03]))
        assert err.kind is RejectionKind.VECTOR_LENGTH_MISMATCH
        assert err.details == {"field": "duration_coefs", "expected": 1, "actual": 2}

    def test_beta_length(self):
        err = rejection(validate_model_run, make_run(p=2, q=1, cond_exp_duration_coefs=[0.8]))
        assert err.details == {"field": "cond_exp_duration_coefs", "expected": 2, "actual": 1}

    def test_psi_lags_length(self):
        err = rejection(validate_model_run, make_run(p=2, q=1, cond_exp_duration_lags=[1.0, 2.0, 3.0]))
        assert err.details == {"field": "cond_exp_duration_lags", "expected": 2, "actual": 3}

    def test_theta_hat_length(self):
        err = rejection(validate_model_run, make_run(p=1, q=2, theta_hat=[0.1, 0.2, 0.3]))
        assert err.details == {"field": "theta_hat", "expected": 4, "actual": 3}

    def test_empty_vectors_when_order_is_zero(self):
        validate_model_run(make_run(p=0, q=2))
        err = rejection(validate_model_run, make_run(p=0, q=2, cond_exp_duration_lags=[5.0]))
        assert err.details == {"field": "cond_exp_duration_lags", "expected": 0, "actual": 1}

    def test_vectors_are_normalised_to_float_tuples(self):
        candidate = make_run(duration_coefs=[1], theta_hat=(0, 1, 2))
        assert candidate.duration_coefs == (1.0,)
        assert candidate.theta_hat == (0.0, 1.0, 2.0)

    def test_first_violation_wins(self):
        # Inverted window and bad alpha together: the vector check comes first
        candidate = make_run(
            duration_coefs=[0.1, 0.2],
            est_start_date=date(2024, 3, 1),
            est_end_date=date(2024, 1, 1),
        )
        err = rejection(validate_model_run, candidate)
        assert err.kind is RejectionKind.VECTOR_LENGTH_MISMATCH


class TestModelRunNumerics:
    """Tests for slack, optimizer diagnostics and estimation window."""

    @pytest.mark.parametrize("slack", [0.0, -1e-3])
    def test_slack_must_be_positive(self, slack):
        err = rejection(validate_model_run, make_run(stationarity_margin_slack=slack))
        assert err.kind is RejectionKind.NON_POSITIVE_SLACK

    def test_iteration_count_positive_when_present(self):
        validate_model_run(make_run(num_iterations=None))
        err = rejection(validate_model_run, make_run(num_iterations=0))
        assert err.kind is RejectionKind.NON_POSITIVE_ITERATION_COUNT

    def test_gradient_norm_non_negative_when_present(self):
        validate_model_run(make_run(final_gradient_norm=0.0))
        err = rejection(validate_model_run, make_run(final_gradient_norm=-1e-9))
        assert err.kind is RejectionKind.NEGATIVE_GRADIENT_NORM

    def test_estimation_window_must_be_ordered(self):
        err = rejection(
            validate_model_run,
            make_run(est_start_date=date(2024, 1, 1), est_end_date=date(2024, 1, 1)),
        )
        assert err.kind is RejectionKind.INVERTED_ESTIMATION_WINDOW

    def test_candidate_exposes_orders(self):
        candidate = make_run(p=2, q=3)
        assert isinstance(candidate, ModelRunCandidate)
        assert (candidate.p, candidate.q) == (2, 3)


class TestMetricInvariants:
    """Tests for observation non-negativity and data versions."""

    @pytest.mark.parametrize(
        "field",
        [
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
        ],
    )
    def test_negative_field_named(self, field):
        err = rejection(validate_metric_values, make_metric(**{field: -0.01}))
        assert err.kind is RejectionKind.NEGATIVE_FIELD
        assert err.field == field

        validate_metric_values(make_metric(**{field: 0.0}))
        validate_metric_values(make_metric(**{field: None}))

    def test_log_return_may_be_negative(self):
        validate_metric_values(make_metric(pair_log_return=-0.2))

    def test_all_absent_is_valid(self):
        validate_metric_values(
            make_metric(
                v3_spread_bps=None,
                cf_v2_spread_bps=None,
                v3_over_cf_v2_ratio=None,
                tvl_usd=None,
                fee_revenue_over_tvl=None,
                markout_over_tvl=None,
                pair_log_return=None,
                pair_vol_annualized=None,
                gas_price_usd=None,
                dex_competition_ratio=None,
                internalization_ratio_all_aggs=None,
            )
        )

    @pytest.mark.parametrize("version", [0, -1])
    def test_data_version_positive(self, version):
        err = rejection(validate_data_version, version)
        assert err.kind is RejectionKind.NON_POSITIVE_DATA_VERSION


class TestRequiredValues:
    """Missing required values are validation errors, never storage errors."""

    def test_pool_main_sample_flag_required(self):
        err = rejection(validate_pool, make_pool(is_in_main_sample=None))
        assert err.kind is RejectionKind.EMPTY_FIELD
        assert err.field == "is_in_main_sample"

    @pytest.mark.parametrize(
        "field",
        ["diurnal_adjusted", "intercept", "log_likelihood_max", "status", "est_start_date", "est_end_date"],
    )
    def test_run_field_required(self, field):
        err = rejection(validate_model_run, make_run(**{field: None}))
        assert err.kind is RejectionKind.EMPTY_FIELD
        assert err.field == field

    def test_blank_status_rejected(self):
        err = rejection(validate_model_run, make_run(status="  "))
        assert err.field == "status"


class IndexOnly:
    """Integer-like value that is not an int, as numpy.int64 is."""

    def __init__(self, value: int):
        self.value = value

    def __index__(self) -> int:
        return self.value


class TestIntegerLikeValues:
    """Integer-like values from numeric libraries are accepted as ints."""

    def test_orders(self):
        candidate = make_run(p=2, q=1, cond_exp_duration_order=IndexOnly(2), duration_order=IndexOnly(1))
        assert validate_model_run(candidate) is InnovationFamily.EXPONENTIAL
        assert type(candidate.cond_exp_duration_order) is int

    def test_fee_tier(self):
        candidate = make_pool(fee_tier=IndexOnly(30))
        validate_pool(candidate)
        assert candidate.fee_tier == 30

    def test_data_version(self):
        candidate = make_metric(data_version=IndexOnly(2))
        validate_data_version(candidate.data_version)
        assert candidate.data_version == 2

    def test_bool_is_not_an_order(self):
        err = rejection(validate_model_run, make_run(p=1, q=1, cond_exp_duration_order=True))
        assert err.kind is RejectionKind.INVALID_ORDERS


class TestNaN:
    """NaN fails every sign check."""

    def test_metric_field(self):
        err = rejection(validate_metric_values, make_metric(tvl_usd=float("nan")))
        assert err.kind is RejectionKind.NEGATIVE_FIELD
        assert err.field == "tvl_usd"

    def test_slack(self):
        err = rejection(validate_model_run, make_run(stationarity_margin_slack=float("nan")))
        assert err.kind is RejectionKind.NON_POSITIVE_SLACK

    def test_gradient_norm(self):
        err = rejection(validate_model_run, make_run(final_gradient_norm=float("nan")))
        assert err.kind is RejectionKind.NEGATIVE_GRADIENT_NORM

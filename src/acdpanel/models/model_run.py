"""ACD model run table."""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
)

from .base import Base


class AcdModelRun(Base):
    """Fitted ACD(p, q) model for one pool: orders, innovation family, parameters, diagnostics."""

    __tablename__ = "acd_model_runs"

    acd_model_run_id = Column(Integer, primary_key=True, autoincrement=True)
    pool_id = Column(Integer, ForeignKey("dex_pools.pool_id"), nullable=False, index=True)

    # ACD specs
    cond_exp_duration_order = Column(Integer, nullable=False, comment="Order p (psi lags)")
    duration_order = Column(Integer, nullable=False, comment="Order q (duration lags)")
    innovation_type = Column(Text, nullable=False)
    weibull_shape = Column(Float, nullable=True)
    gen_gamma_shape_d = Column(Float, nullable=True)
    gen_gamma_shape_p = Column(Float, nullable=True)

    # ACD metadata
    duration_time_units = Column(Text, nullable=False)
    diurnal_adjusted = Column(Boolean, nullable=False, default=True)
    data_length = Column(Integer, nullable=False, comment="Durations used in estimation")

    # Run data
    est_intercept = Column(Float, nullable=False, comment="omega")
    est_duration_coefs = Column(JSON, nullable=False, comment="alpha, length q")
    est_cond_exp_duration_coefs = Column(JSON, nullable=False, comment="beta, length p")
    stationarity_margin_slack = Column(Float, nullable=False)
    est_cond_exp_duration_lags = Column(JSON, nullable=False, comment="psi lags, length p")

    # QMLE results
    theta_hat = Column(JSON, nullable=False, comment="[omega, alpha..., beta...]")
    log_likelihood_max = Column(Float, nullable=False)
    status = Column(Text, nullable=False)
    num_iterations = Column(Integer, nullable=True)
    final_gradient_norm = Column(Float, nullable=True)

    # Run metadata
    est_start_date = Column(Date, nullable=False)
    est_end_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_amr_pool_id_est_dates", "pool_id", "est_start_date", "est_end_date"),
        CheckConstraint(
            "cond_exp_duration_order >= 0 AND duration_order >= 0 "
            "AND (cond_exp_duration_order + duration_order) > 0",
            name="amr_orders_valid",
        ),
        CheckConstraint(
            "innovation_type IN ('exponential', 'weibull', 'generalized gamma')",
            name="amr_innovation_type_valid",
        ),
        CheckConstraint(
            "(innovation_type <> 'weibull' AND weibull_shape IS NULL) "
            "OR (innovation_type = 'weibull' AND weibull_shape IS NOT NULL AND weibull_shape > 0)",
            name="amr_weibull_shape_valid",
        ),
        CheckConstraint(
            "(innovation_type <> 'generalized gamma' "
            "AND gen_gamma_shape_d IS NULL AND gen_gamma_shape_p IS NULL) "
            "OR (innovation_type = 'generalized gamma' "
            "AND gen_gamma_shape_d IS NOT NULL AND gen_gamma_shape_p IS NOT NULL "
            "AND gen_gamma_shape_d > 0 AND gen_gamma_shape_p > 0)",
            name="amr_gen_gamma_shape_valid",
        ),
        CheckConstraint("TRIM(duration_time_units) <> ''", name="amr_duration_time_units_valid"),
        CheckConstraint("data_length > 0", name="amr_data_length_positive"),
        CheckConstraint("stationarity_margin_slack > 0", name="amr_stationarity_margin_slack_positive"),
        CheckConstraint("num_iterations IS NULL OR num_iterations > 0", name="amr_num_iterations_positive"),
        CheckConstraint(
            "final_gradient_norm IS NULL OR final_gradient_norm >= 0",
            name="amr_final_gradient_norm_non_negative",
        ),
        CheckConstraint("est_start_date < est_end_date", name="amr_valid_estimation_dates"),
    )

    def __repr__(self) -> str:
        return (
            f"<AcdModelRun(id={self.acd_model_run_id}, pool={self.pool_id}, "
            f"ACD({self.cond_exp_duration_order},{self.duration_order}), {self.innovation_type})>"
        )

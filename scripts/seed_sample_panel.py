"""Create the panel schema and replay a small pool / run / observation scenario."""

import asyncio
from datetime import date

from dotenv import load_dotenv

from acdpanel.config import configure_logging
from acdpanel.db.init_db import init_db
from acdpanel.domain import MetricCandidate, ModelRunCandidate, PoolCandidate
from acdpanel.errors import PanelError
from acdpanel.models.base import create_engine
from acdpanel.store import PanelStore

load_dotenv()


async def seed_sample_panel():
    """Register a pool, record runs and ingest observations, printing each outcome."""
    configure_logging()
    engine = create_engine()
    try:
        await init_db(engine)
        print("✅ Tables created/verified")
        store = PanelStore.from_engine(engine)

        pool_id = await store.registry.register(
            PoolCandidate.from_tokens(
                chain_name="ethereum",
                dex_name="uniswap",
                pool_address="0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640",
                token_a_symbol="WETH",
                token_b_symbol="USDC",
                token_a_address="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
                token_b_address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
                fee_tier=5,
            )
        )
        print(f"✅ Registered pool {pool_id}")

        run = dict(
            pool_id=pool_id,
            cond_exp_duration_order=1,
            duration_order=1,
            innovation_type="exponential",
            duration_time_units="seconds",
            data_length=250_000,
            intercept=0.05,
            duration_coefs=[0.08],
            cond_exp_duration_coefs=[0.9],
            stationarity_margin_slack=1e-3,
            cond_exp_duration_lags=[12.4],
            theta_hat=[0.05, 0.08, 0.9],
            log_likelihood_max=-81234.5,
            status="converged",
            num_iterations=42,
            final_gradient_norm=1e-6,
            est_start_date=date(2023, 1, 1),
            est_end_date=date(2023, 12, 31),
        )
        run_id = await store.ledger.record(ModelRunCandidate(**run))
        print(f"✅ Recorded model run {run_id}")

        observation = dict(pool_id=pool_id, trading_date=date(2024, 1, 1), acd_model_run_id=run_id)
        attempts = [
            (
                "run with alpha of length 2",
                lambda: store.ledger.record(ModelRunCandidate(**{**run, "duration_coefs": [0.05, 0.03]})),
            ),
            (
                "negative v3 spread",
                lambda: store.panel.observe(MetricCandidate(**observation, v3_spread_bps=-1)),
            ),
        ]
        for label, attempt in attempts:
            try:
                await attempt()
                print(f"❌ {label} was accepted")
            except PanelError as e:
                print(f"✅ {label} rejected: {e}")

        key = await store.panel.observe(MetricCandidate(**observation, v3_spread_bps=5))
        print(f"✅ Stored observation {key}")

        try:
            await store.panel.observe(MetricCandidate(**observation, v3_spread_bps=5))
            print("❌ duplicate observation was accepted")
        except PanelError as e:
            print(f"✅ duplicate observation rejected: {e}")
    finally:
        await engine.dispose()

    print("\n✅ Sample panel seeded")


if __name__ == "__main__":
    asyncio.run(seed_sample_panel())

"""DEX pool reference table."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Integer,
    Text,
    UniqueConstraint,
)

from .base import Base


class DexPool(Base):
    """Canonical metadata for one DEX liquidity pool in the study."""

    __tablename__ = "dex_pools"

    pool_id = Column(Integer, primary_key=True, autoincrement=True)
    chain_name = Column(Text, nullable=False, comment="Chain identifier (ethereum, arbitrum, ...)")
    dex_name = Column(Text, nullable=False, comment="DEX protocol hosting the pool (uniswap_v3, ...)")
    pool_address = Column(Text, nullable=False, unique=True)
    # lower(trim(pool_address)); backs case-insensitive address uniqueness
    pool_address_key = Column(Text, nullable=False, unique=True)

    # Pool details
    token_a_symbol = Column(Text, nullable=False)
    token_b_symbol = Column(Text, nullable=False)
    token_a_address = Column(Text, nullable=False)
    token_b_address = Column(Text, nullable=False)
    pair_symbol = Column(Text, nullable=False, comment='"<token_a_symbol>-<token_b_symbol>"')
    fee_tier = Column(Integer, nullable=False, comment="Fee tier in basis points")

    # Sample window
    is_in_main_sample = Column(Boolean, nullable=False, default=True)
    sample_start_date = Column(Date, nullable=True)
    sample_end_date = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("chain_name", "pair_symbol", "fee_tier", name="dp_unique_chain_pair_fee_tier"),
        CheckConstraint("TRIM(chain_name) <> '' AND TRIM(dex_name) <> ''", name="dp_valid_chain_dex_names"),
        CheckConstraint(
            "TRIM(token_a_symbol) <> '' AND TRIM(token_b_symbol) <> '' "
            "AND LOWER(TRIM(token_a_symbol)) <> LOWER(TRIM(token_b_symbol))",
            name="dp_valid_token_symbols",
        ),
        CheckConstraint(
            "TRIM(token_a_address) <> '' AND TRIM(token_b_address) <> '' "
            "AND LOWER(TRIM(token_a_address)) <> LOWER(TRIM(token_b_address))",
            name="dp_valid_token_addresses",
        ),
        CheckConstraint(
            "pair_symbol = token_a_symbol || '-' || token_b_symbol",
            name="dp_valid_pair_symbol",
        ),
        CheckConstraint("fee_tier > 0", name="dp_positive_fee_tier"),
        CheckConstraint(
            "sample_start_date IS NULL OR sample_end_date IS NULL "
            "OR sample_start_date < sample_end_date",
            name="dp_valid_sample_dates",
        ),
    )

    def __repr__(self) -> str:
        return f"<DexPool(id={self.pool_id}, {self.chain_name}.{self.dex_name} {self.pair_symbol} fee={self.fee_tier})>"

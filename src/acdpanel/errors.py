"""
Rejection taxonomy for the ACD panel.

Every rejected write raises a PanelError subclass whose ``kind`` names the
violated rule and whose ``details`` carry the offending field (and, for
vector shape violations, the expected and actual lengths):

    ValidationError   candidate record is malformed
    ReferentialError  referenced pool/run is missing or belongs to another pool
    ConflictError     uniqueness/identity violation
    StorageError      the database failed; safe to retry the whole operation
"""

from contextlib import asynccontextmanager
from enum import Enum
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError

logger = structlog.get_logger()


class RejectionKind(str, Enum):
    """Tag naming the specific rule a rejected write violated."""

    # Pools
    EMPTY_FIELD = "EmptyField"
    DUPLICATE_ADDRESS = "DuplicateAddress"
    DUPLICATE_BUSINESS_KEY = "DuplicateBusinessKey"
    INVALID_PAIR_LABEL = "InvalidPairLabel"
    INDISTINCT_TOKENS = "IndistinctTokens"
    NON_POSITIVE_FEE_TIER = "NonPositiveFeeTier"
    INVERTED_SAMPLE_WINDOW = "InvertedSampleWindow"
    NOT_FOUND = "NotFound"

    # Model runs
    UNKNOWN_POOL = "UnknownPool"
    INVALID_ORDERS = "InvalidOrders"
    INVALID_INNOVATION_FAMILY = "InvalidInnovationFamily"
    SHAPE_PARAMETER_MISMATCH = "ShapeParameterMismatch"
    EMPTY_UNITS_LABEL = "EmptyUnitsLabel"
    NON_POSITIVE_SAMPLE_LENGTH = "NonPositiveSampleLength"
    VECTOR_LENGTH_MISMATCH = "VectorLengthMismatch"
    NON_POSITIVE_SLACK = "NonPositiveSlack"
    NON_POSITIVE_ITERATION_COUNT = "NonPositiveIterationCount"
    NEGATIVE_GRADIENT_NORM = "NegativeGradientNorm"
    INVERTED_ESTIMATION_WINDOW = "InvertedEstimationWindow"

    # Observations
    UNKNOWN_RUN = "UnknownRun"
    CROSS_POOL_RUN_LINK = "CrossPoolRunLink"
    NEGATIVE_FIELD = "NegativeField"
    NON_POSITIVE_DATA_VERSION = "NonPositiveDataVersion"
    DUPLICATE_OBSERVATION = "DuplicateObservation"

    STORAGE_FAILURE = "StorageFailure"


class PanelError(Exception):
    """Base class for every rejection raised by the panel components."""

    def __init__(self, kind: RejectionKind, message: str | None = None, **details: Any):
        self.kind = kind
        self.details = details
        self.message = message or kind.value
        super().__init__(self._render())

    @property
    def field(self) -> str | None:
        return self.details.get("field")

    def _render(self) -> str:
        if not self.details:
            return f"{self.kind.value}: {self.message}"
        extras = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        return f"{self.kind.value}: {self.message} ({extras})"

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(kind={self.kind.value}, details={self.details})>"


class ValidationError(PanelError):
    """A structural or numeric invariant of the candidate record is violated."""


class ReferentialError(PanelError):
    """A referenced pool or model run does not exist or belongs to another pool."""


class ConflictError(PanelError):
    """A uniqueness or identity invariant would be broken by the insert."""


class StorageError(PanelError):
    """The underlying database failed; nothing was committed."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(RejectionKind.STORAGE_FAILURE, message)
        self.cause = cause


@asynccontextmanager
async def storage_errors(operation: str):
    """Re-raise SQLAlchemy failures inside the block as StorageError."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Storage failure", operation=operation, error=str(e))
        raise StorageError(f"{operation} failed: {e}", cause=e) from e


def log_rejection(log, event: str, error: PanelError, **context: Any) -> None:
    """Log a rejected write at warning level; storage failures are logged where raised."""
    if isinstance(error, StorageError):
        return
    log.warning(event, kind=error.kind.value, **{**context, **error.details})

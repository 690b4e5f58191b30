"""
Custom exception types for maq.

Every exception carries a machine-readable code so callers can
handle specific failure modes programmatically.
"""


class MaqError(Exception):
    """Base exception for all maq errors."""

    def __init__(self, message: str, code: str = "MAQ_ERROR"):
        self.code = code
        super().__init__(message)


class InvalidInputError(MaqError):
    """Raised when arrays, budgets or query arguments fail validation."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message, code="INVALID_INPUT")


class IncompatibleCurvesError(MaqError):
    """Raised when two curves cannot be compared on paired replicates."""

    def __init__(self, message: str):
        super().__init__(message, code="INCOMPATIBLE_CURVES")


class DegenerateResampleError(MaqError):
    """Raised when too many bootstrap draws have no admissible action."""

    def __init__(self, n_failed: int, n_total: int, threshold: float):
        self.n_failed = n_failed
        self.n_total = n_total
        self.threshold = threshold
        msg = (
            f"{n_failed} of {n_total} bootstrap replicates were degenerate "
            f"(allowed failure rate: {threshold:.0%})"
        )
        super().__init__(msg, code="DEGENERATE_RESAMPLE")

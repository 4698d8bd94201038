"""
Error taxonomy for risk evaluation and order execution.

Risk denials are NOT exceptions: they are EvaluationResult values with
status=deny. Only conditions the caller cannot treat as "nothing to do"
are raised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional

if TYPE_CHECKING:
    from perp_risk.domain.models import SubmissionResult


class ConfigurationError(ValueError):
    """Invalid thresholds detected at construction time. Fatal at startup."""

    def __init__(self, problems: Iterable[str]):
        self.problems = list(problems)
        super().__init__("invalid configuration: " + "; ".join(self.problems))


class DecisionValidationError(ValueError):
    """Raised when a raw decision payload fails schema validation."""


class PlanRejected(Exception):
    """The planner has nothing to do for this plan (not a system fault)."""


class PersistenceError(RuntimeError):
    """Ledger transaction failed; no partial state was committed."""


class BrokerError(Exception):
    """Base class for errors raised by broker clients."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientBrokerError(BrokerError):
    """Network, timeout, rate-limit or unavailable. Safe to retry verbatim."""


class FatalBrokerError(BrokerError):
    """Auth, validation or margin rejection. Never retried."""


class RetryExhaustedError(Exception):
    """A retryable operation kept failing until the attempt budget ran out."""

    def __init__(self, description: str, attempts: int, last_error: Optional[BaseException]):
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{description} failed after {attempts} attempts: {last_error}")


class OrderSubmissionError(Exception):
    """
    An order batch was aborted.

    `result` holds the orders that did reach the broker before the failure,
    with executed=False.
    """

    def __init__(self, message: str, result: "SubmissionResult"):
        super().__init__(message)
        self.result = result

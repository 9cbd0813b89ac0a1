"""Errors raised by the fraud scoring pipeline."""


class FraudScoringException(Exception):
    """Base class for fraud domain errors."""


class RulesEvaluationError(FraudScoringException):
    """Business rules could not be evaluated; the transaction must not be approved."""


class ExternalSignalError(FraudScoringException):
    """The external fraud-signal provider did not return a usable score."""

    def __init__(self, message: str, status: str = "ERROR") -> None:
        super().__init__(message)
        self.status = status


class ClassifierUnavailableError(FraudScoringException):
    """The primary classifier has no model loaded."""


class ScoringError(FraudScoringException):
    """A fail-fast pipeline stage failed; no decision was produced."""

    def __init__(self, transaction_id: str, stage: str, message: str = "") -> None:
        self.transaction_id = transaction_id
        self.stage = stage
        super().__init__(message or f"Scoring failed at stage '{stage}' for {transaction_id}")

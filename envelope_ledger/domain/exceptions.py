"""Domain-specific exceptions"""

from typing import Any


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFoundError(DomainException):
    """Entity is absent or not owned by the caller"""

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")


class TemplateNotFoundError(NotFoundError):
    """Recurring template is absent, inactive, or not owned by the caller"""

    def __init__(self, template_id: Any, reason: str = "not found"):
        super().__init__("RecurringTemplate", template_id)
        self.args = (f"RecurringTemplate {template_id} {reason}",)


class AlreadyProcessedError(DomainException):
    """Transaction state does not allow the requested transition"""

    def __init__(self, transaction_id: Any, state: str, operation: str):
        self.transaction_id = transaction_id
        self.state = state
        self.operation = operation
        super().__init__(f"Cannot {operation} transaction {transaction_id}: already {state}")


class MissingEnvelopeError(DomainException):
    """Operation requires an envelope assignment that is absent"""

    pass


class InvalidAmountError(DomainException):
    """Monetary input is non-positive, zero, or malformed"""

    pass


class InconsistentStateError(DomainException):
    """A ledger invariant check failed"""

    pass


class DuplicateReviewRequiredError(DomainException):
    """Bank import is flagged as a likely duplicate and must be resolved first"""

    def __init__(self, transaction_id: Any, duplicate_of_id: Any):
        self.transaction_id = transaction_id
        self.duplicate_of_id = duplicate_of_id
        super().__init__(
            f"Transaction {transaction_id} is a potential duplicate of "
            f"transaction {duplicate_of_id}; resolve it before approving"
        )


class BankFeedError(DomainException):
    """Bank feed returned an error or is unavailable"""

    pass


class InvalidRequestError(DomainException):
    """Non-monetary input violates a ledger rule (blank pattern, unknown frequency, ...)"""

    pass

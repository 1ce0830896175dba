# app/core/errors.py

from fastapi import status


class DistributionError(Exception):
    """
    Base error of the distribution subsystem.
    `code` is machine readable, `message` is shown to the user as is.
    """
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class DistributionValidationError(DistributionError):
    """Bad input. Nothing was changed, the caller may fix the input and retry."""
    status_code = status.HTTP_400_BAD_REQUEST


class DistributionStateError(DistributionError):
    """The record is not in a state that allows this operation."""
    status_code = status.HTTP_409_CONFLICT


class DistributionNotFoundError(DistributionError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id):
        super().__init__(f"{entity}_not_found", f"{entity.replace('_', ' ').capitalize()} {entity_id} not found")


class WithdrawalRejected(DistributionError):
    """A withdrawal request failed validation before any money was reserved."""

    # Reasons that mean "wait", not "fix the input"
    STATE_REASONS = {"active_withdrawal_exists", "distributor_not_active"}

    def __init__(self, reason: str, message: str):
        super().__init__(reason, message)
        self.reason = reason
        if reason in self.STATE_REASONS:
            self.status_code = status.HTTP_409_CONFLICT

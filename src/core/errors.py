from __future__ import annotations


class MembershipError(Exception):
    """Base class for failures surfaced by the membership workflow."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class UnauthenticatedError(MembershipError):
    pass


class ForbiddenError(MembershipError):
    pass


class NotFoundError(MembershipError):
    pass


class ConflictError(MembershipError):
    pass


class InvalidSeatCountError(MembershipError):
    pass


class InternalError(MembershipError):
    pass


class BillingProviderError(RuntimeError):
    pass


class SeatAdjustmentError(RuntimeError):
    pass


class InvitationDeliveryError(RuntimeError):
    pass

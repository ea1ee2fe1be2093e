from __future__ import annotations

ERROR_MESSAGES = {
    "REQUIRED_FIELDS_MISSING": "Required fields are missing.",
    "INVALID_TIME_RANGE": "The requested time range is invalid.",
    "INVALID_REQUEST_TYPE": "This request type cannot be created directly.",
    "TARGET_REQUIRED": "A target member is required for this request type.",
    "TARGET_NOT_MEMBER": "The target user is not a member of this room.",
    "SELF_TARGET": "You cannot send a request to yourself.",
    "OWNER_NOT_TARGETABLE": "The room owner holds no exchangeable slot.",
    "ROOM_NOT_FOUND": "Room not found.",
    "REQUEST_NOT_FOUND": "Request not found.",
    "NOT_A_MEMBER": "You are not a member of this room.",
    "OWNER_CANNOT_REQUEST": "The room owner cannot request schedule exchanges.",
    "DUPLICATE_REQUEST": "An identical request is already pending.",
    "INFEASIBLE_SLOT": "This time cannot be selected.",
    "INVALID_ACTION": "Invalid action. Only approved or rejected are allowed.",
    "INVALID_CHAIN_ACTION": "Invalid action. Only proceed or cancel are allowed.",
    "NO_PERMISSION": "You do not have permission to handle this request.",
    "ALREADY_PROCESSED": "This request has already been processed.",
    "CHAIN_IN_PROGRESS": "A chain adjustment for this request is still in progress.",
    "CANCEL_REQUESTER_ONLY": "Only the requester can cancel this request.",
    "CANCEL_PENDING_ONLY": "Only pending requests can be cancelled.",
    "CHAIN_HOP_NOT_CANCELLABLE": "Chain requests are cancelled through their originating request.",
    "CHAIN_CONFIRM_REQUESTER_ONLY": "Only the requester can confirm this chain adjustment.",
    "CHAIN_CONFIRMATION_NOT_NEEDED": "This request does not need chain confirmation.",
    "CHAIN_DATA_MISSING": "This request has no chain adjustment data.",
    "CONCURRENT_MODIFICATION": "The room was modified concurrently. Please retry.",
    "SERVER_ERROR": "Server error",
}


class ExchangeError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_payload(self) -> dict:
        return {"msg": self.detail}


class PermissionDenied(ExchangeError):
    status_code = 403


class NotFound(ExchangeError):
    status_code = 404


class ValidationFailed(ExchangeError):
    status_code = 400

    def __init__(self, detail: str, *, duplicate_request: bool = False) -> None:
        super().__init__(detail)
        self.duplicate_request = duplicate_request

    def to_payload(self) -> dict:
        payload = super().to_payload()
        if self.duplicate_request:
            payload["duplicateRequest"] = True
        return payload


class ConcurrentModification(ExchangeError):
    status_code = 409


class StalePlanError(Exception):
    """A stored move no longer matches the slot table."""

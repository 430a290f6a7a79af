"""Errors surfaced to HTTP callers as ``{"status": ..., "message": ...}`` bodies."""


class GatewayError(Exception):
    status_code = 500
    status = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict:
        return {"status": self.status, "message": self.message}


class InvalidRequestError(GatewayError):
    status_code = 400
    status = "bad_request"


class PairingCodeNotFoundError(GatewayError):
    status_code = 404
    status = "not_found"


class SendFailedError(GatewayError):
    status_code = 500
    status = "error"


class SessionUnavailableError(GatewayError):
    status_code = 503
    status = "unavailable"

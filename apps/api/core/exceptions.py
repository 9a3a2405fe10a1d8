"""
HTTP errors raised by routers.

main.py renders every APIException as
{"success": false, "error": <detail>, "error_code": <code>}, so the phone
and the dashboard can branch on error_code without parsing messages.
Ingest endpoints do not use these: they always answer with a report.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """An HTTPException that also carries a machine-readable error_code."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """A client (or other owner-scoped resource) the caller named does not exist."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            status.HTTP_404_NOT_FOUND,
            f"{resource} not found: {identifier}",
            error_code="NOT_FOUND",
        )


class InvalidPairingCodeError(APIException):
    # Same response whether or not the code ever existed
    def __init__(self):
        super().__init__(
            status.HTTP_404_NOT_FOUND,
            "invalid pairing code",
            error_code="INVALID_PAIRING_CODE",
        )


class BadRequestError(APIException):
    """The request is missing a field the handler needs, e.g. a blank pairing code."""

    def __init__(self, detail: str, error_code: str = "BAD_REQUEST"):
        super().__init__(status.HTTP_400_BAD_REQUEST, detail, error_code=error_code)


class ServiceUnavailableError(APIException):
    """
    The server could not finish the request, but a retry may succeed.

    Raised when no free pairing code was found within the attempt limit.
    """

    def __init__(self, detail: str, error_code: str = "SERVICE_UNAVAILABLE"):
        super().__init__(status.HTTP_503_SERVICE_UNAVAILABLE, detail, error_code=error_code)

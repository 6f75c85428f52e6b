"""
Mapping from service errors to HTTP errors with the standard envelope:

    {"detail": {"error": {"code": "NOT_FOUND", "message": "..."}}}
"""
from fastapi import HTTPException, status

from movienight.services.errors import ServiceError

STATUS_BY_CODE = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "CONFLICT": status.HTTP_409_CONFLICT,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "INTERNAL": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def error_body(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


def http_error(exc: ServiceError) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_CODE.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error_body(exc.code, str(exc)),
    )

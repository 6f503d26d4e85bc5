"""
Helpers for turning failed ServiceResults into DRF responses.

Usage:
    RETURN_ERROR_STATUS = {"FORBIDDEN": 403, "RETURN_EXISTS": 409}

    result = ReturnService.create_return(...)
    if not result.success:
        return error_response(result, RETURN_ERROR_STATUS)
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response

from core.services import ServiceResult

COMMON_ERROR_STATUS = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "PERMISSION_DENIED": status.HTTP_403_FORBIDDEN,
    "CONFLICT": status.HTTP_409_CONFLICT,
}


def error_response(
    result: ServiceResult,
    status_map: dict[str, int] | None = None,
    default_status: int = status.HTTP_400_BAD_REQUEST,
) -> Response:
    mapping = {**COMMON_ERROR_STATUS, **(status_map or {})}
    return Response(result.to_response(), status=mapping.get(result.error_code, default_status))

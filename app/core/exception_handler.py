"""
DRF exception handler that understands application errors.

Service code raises BaseApplicationError subclasses for unexpected failures.
When one escapes a view, it is rendered with the class's HTTP status and
to_dict() body instead of becoming a 500.
"""

from __future__ import annotations

import logging

from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """Render BaseApplicationError subclasses, defer everything else to DRF."""
    if isinstance(exc, BaseApplicationError):
        view = context.get("view")
        logger.warning(
            f"Application error in {view.__class__.__name__ if view else 'unknown view'}: {exc}",
            extra={"error_code": exc.error_code, "details": exc.details},
        )
        return Response(exc.to_dict(), status=exc.http_status)

    return exception_handler(exc, context)

"""
Helpers for turning service-layer errors into DRF responses.

Views call services and catch BaseApplicationError; each error class
declares its own HTTP status, so the mapping stays next to the taxonomy
in core.exceptions.

Usage:
    from core.responses import error_response

    try:
        booking = BookingService.cancel(booking_id, actor=request.user, reason=reason)
    except BaseApplicationError as e:
        return error_response(e)
"""

from __future__ import annotations

import logging

from rest_framework.response import Response

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


def error_response(exc: BaseApplicationError) -> Response:
    """
    Build a Response for an application error.

    Server-side failures (5xx) are logged at error level, client errors at
    info level so noisy clients don't flood the error log.
    """
    status_code = exc.http_status
    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request rejected",
        extra={"error_code": exc.error_code, "status_code": status_code},
    )
    return Response(exc.to_dict(), status=status_code)

"""
fn_auth_login: Login Azure Function
===================================

Checks a username/password pair against the ``Login`` sheet.

Request Format
--------------
{
    "username": "rahul",
    "password": "secret"
}

Response Codes
--------------
200 OK
    - "OK": credentials matched; ``user`` holds the session and ``token`` the
      signed session token to send back as ``Authorization: Bearer <token>``
      on later calls (valid until ``expires_at``, epoch seconds)

401 Unauthorized
    - "INVALID_CREDENTIALS": no matching row

400 Bad Request
    - "ERROR": Invalid request format

502 Bad Gateway
    - "UPSTREAM_ERROR": Login sheet could not be read

500 Internal Server Error
    - "ERROR": SESSION_SECRET is not configured
"""

import logging
import json
import azure.functions as func

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tmt_shared import (
    LoginRequest,
    GvizError,
    get_gviz_client,
    authenticate,
    issue_session_token,
    SessionConfigError,
    generate_trace_id,
)


logger = logging.getLogger(__name__)


def main(req: func.HttpRequest) -> func.HttpResponse:
    """
    Main entry point for login.

    Flow:
    1. Parse and validate request
    2. Scan the Login sheet for an exact match
    3. Return the session and its signed token, or 401
    """
    trace_id = generate_trace_id()

    try:
        try:
            body = req.get_json()
            request = LoginRequest(**body)
        except (ValueError, TypeError) as e:
            logger.error(f"[{trace_id}] Request validation failed: {e}")
            return _response("ERROR", trace_id, 400, message=f"Invalid request: {str(e)}")

        try:
            user = authenticate(get_gviz_client(), request.username, request.password, trace_id)
        except GvizError as e:
            logger.error(f"[{trace_id}] Login sheet unavailable: {e}")
            return _response("UPSTREAM_ERROR", trace_id, 502, message="Could not read the Login sheet")

        if user is None:
            return _response("INVALID_CREDENTIALS", trace_id, 401, message="Invalid username or password")

        try:
            token, expires_at = issue_session_token(user)
        except SessionConfigError as e:
            logger.error(f"[{trace_id}] Cannot issue session token: {e}")
            return _response("ERROR", trace_id, 500, message="Login is not configured")

        return _response(
            "OK", trace_id, 200,
            user=user.to_public_dict(),
            token=token,
            expires_at=expires_at
        )

    except Exception as e:
        logger.exception(f"[{trace_id}] Unexpected error during login: {e}")
        return _response("ERROR", trace_id, 500, message=f"Internal error: {str(e)}")


def _response(status: str, trace_id: str, status_code: int, **fields) -> func.HttpResponse:
    return func.HttpResponse(
        json.dumps({"status": status, "trace_id": trace_id, **fields}),
        status_code=status_code,
        mimetype="application/json"
    )

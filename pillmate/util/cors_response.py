"""CORS helpers for callable and HTTP functions."""

from typing import Any, Dict, List, Optional

from firebase_functions import https_fn
from flask import Response, jsonify


def _cors_headers(methods: List[str], max_age: bool = False) -> Dict[str, str]:
    headers = {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": ", ".join(methods),
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
    }
    if max_age:
        headers["Access-Control-Max-Age"] = "3600"
    return headers


def cors_response_on_call(raw_request) -> Optional[tuple]:
    """Answer a CORS preflight sent to a callable function.

    Args:
        raw_request: Raw HTTP request object

    Returns:
        Preflight response tuple for OPTIONS requests, None otherwise
    """
    if raw_request is not None and raw_request.method == "OPTIONS":
        return ("", 204, _cors_headers(["POST", "OPTIONS"], max_age=True))
    return None


def preflight_response(req: https_fn.Request, allowed_methods: Optional[List[str]] = None) -> Optional[Response]:
    """Preflight response for OPTIONS requests to HTTP functions, else None."""
    if req.method != "OPTIONS":
        return None
    return Response("", status=204, headers=_cors_headers(allowed_methods or ["GET", "OPTIONS"], max_age=True))


def create_cors_response(data: Dict[str, Any], status: int = 200) -> Response:
    """JSON response with CORS headers."""
    response = jsonify(data)
    response.status_code = status
    response.headers.update(_cors_headers(["GET", "OPTIONS"]))
    return response

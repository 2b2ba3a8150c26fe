"""
Response envelope shared by all API routes.

Success: ``{"success": true, "message": ..., "data": ...}``
Errors are rendered by the exception handlers in ``paygate.core.middleware``.
"""
from typing import Any


def success_response(data: Any, message: str = "Success") -> dict[str, Any]:
    return {"success": True, "message": message, "data": data}

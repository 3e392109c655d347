"""
Response Envelope
=================
JSON envelope shared by every API endpoint.
"""

from typing import Any, Optional

from fastapi.responses import JSONResponse


def send_response(data: Any) -> JSONResponse:
    """Wrap ``data`` in a success envelope."""
    return JSONResponse(content={"status": "success", "data": data})


def send_error_response(message: str, status_code: int, data: Optional[Any] = None) -> JSONResponse:
    """Build an error envelope."""
    content = {"status": "error", "message": message}
    if data is not None:
        content["data"] = data
    return JSONResponse(status_code=status_code, content=content)

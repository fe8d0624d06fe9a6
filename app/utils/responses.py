"""
Success envelope shared by every endpoint: ``{"success": true, "data": ..., "message"?, "pagination"?}``.
Errors use the matching ``{"success": false, "error": ...}`` shape built by ErrorHandlerService.
"""

from typing import Any, Dict, Optional

from app.utils.query_engine import PageMeta


def success_response(
    data: Any = None,
    message: Optional[str] = None,
    pagination: Optional[PageMeta] = None
) -> Dict[str, Any]:
    """
    Build a success envelope.

    Args:
        data: Response payload
        message: Optional human readable message
        pagination: Page metadata for list endpoints

    Returns:
        Envelope dictionary
    """
    response: Dict[str, Any] = {"success": True, "data": data}
    if message:
        response["message"] = message
    if pagination is not None:
        response["pagination"] = pagination.to_dict()
    return response

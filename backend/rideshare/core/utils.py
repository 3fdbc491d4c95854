"""
Utility functions for the application.
"""
from typing import Any, Dict
import math


def format_response(data: Any = None, message: str = "Success") -> Dict[str, Any]:
    """Format API response in the standard envelope."""
    response = {
        "success": True,
        "message": message,
    }
    if data is not None:
        response["data"] = data
    return response


def format_error(message: str) -> Dict[str, Any]:
    """Format error response."""
    return {"success": False, "message": message}


def paginate(page: int, limit: int, total: int) -> Dict[str, int]:
    """Build the pagination block returned with list endpoints."""
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }

"""
Success payload helper shared by the endpoints
"""

from typing import Any, Dict

from expense_api.core.utils import now_rfc3339


def success(**data: Any) -> Dict[str, Any]:
    """`{"success": true, ..., "timestamp": ...}`"""
    return {"success": True, **data, "timestamp": now_rfc3339()}

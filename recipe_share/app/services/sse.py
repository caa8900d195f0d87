import json
from typing import Any, Dict


def format_sse(payload: Dict[str, Any]) -> str:
    """Frame one server-sent event: ``data: <json>`` followed by a blank line."""
    return f"data: {json.dumps(payload)}\n\n"

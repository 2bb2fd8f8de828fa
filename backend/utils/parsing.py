import json
import re
from typing import Any, Optional, Dict


def extract_json_block(text: str) -> Optional[Dict[str, Any]]:
    """Extract the first valid JSON object from model output text."""
    if not text:
        return None

    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                candidate = text[start : i + 1]
                try:
                    parsed = json.loads(candidate)
                except json.JSONDecodeError:
                    try:
                        cleaned = re.sub(r"[\x00-\x1f]", "", candidate)
                        parsed = json.loads(cleaned)
                    except json.JSONDecodeError:
                        return None
                return parsed if isinstance(parsed, dict) else None
    return None


def strip_code_fence(text: str) -> str:
    """Drop a surrounding ```json fence that models like to add."""
    match = re.match(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", text or "", re.DOTALL)
    return match.group(1) if match else (text or "")

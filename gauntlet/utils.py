import json
from typing import Any, Mapping, Optional, Union


def parse_json(text: str) -> Optional[Any]:
    """Best-effort JSON decode of a (possibly truncated) body snippet."""
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def extract_token(text: str) -> Optional[str]:
    """Finds an issued credential in `{data: {token}}` or `{token}` shaped bodies."""
    data = parse_json(text)
    if not isinstance(data, dict):
        return None
    inner = data.get("data")
    if isinstance(inner, dict) and isinstance(inner.get("token"), str) and inner["token"]:
        return inner["token"]
    token = data.get("token")
    if isinstance(token, str) and token:
        return token
    return None


def excerpt(payload: Union[str, Mapping[str, str]], length: int = 50) -> str:
    text = payload if isinstance(payload, str) else json.dumps(dict(payload), sort_keys=True)
    if len(text) <= length:
        return text
    return text[:length] + "..."

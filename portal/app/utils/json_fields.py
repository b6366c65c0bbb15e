import json
from typing import Any


def clean_string_list(raw: Any) -> list[str]:
    """Strip, drop blanks and keep order. Accepts a list or a JSON-encoded list."""
    if raw is None:
        return []
    if isinstance(raw, str):
        s = raw.strip()
        if not s:
            return []
        try:
            raw = json.loads(s)
        except ValueError:
            return []
    if not isinstance(raw, (list, tuple)):
        return []
    return [str(x).strip() for x in raw if x is not None and str(x).strip()]


def dump_string_list(items: Any) -> str | None:
    cleaned = clean_string_list(items)
    return json.dumps(cleaned, ensure_ascii=False) if cleaned else None

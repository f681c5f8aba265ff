from __future__ import annotations

import re

_WS = re.compile(r"\s+")


def normalize_name(raw: str | None) -> str:
    """Trim and collapse internal whitespace to single spaces."""
    return _WS.sub(" ", (raw or "").strip())

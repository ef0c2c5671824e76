from __future__ import annotations

import uuid

from fastapi import HTTPException


def parse_uuid(value: str | None, *, field: str, detail: str | None = None) -> uuid.UUID:
    """Parse a path or body identifier, failing with 400 instead of a 500 on junk input."""
    try:
        return uuid.UUID(str(value or "").strip())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=detail or f"invalid {field}") from e

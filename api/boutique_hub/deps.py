# boutique_hub/deps.py
"""Shared FastAPI dependencies."""
from __future__ import annotations
from typing import Optional, Tuple

from fastapi import Header, Query

from boutique_hub.errors import Unauthorized
from boutique_hub.utils import clamp_page


async def current_user(x_user: Optional[str] = Header(None, alias="X-User")) -> str:
    """Acting user for activity records; identity is established upstream."""
    if not x_user or not x_user.strip():
        raise Unauthorized("X-User header is required")
    return x_user.strip()


def page(skip: int = Query(0, ge=0), limit: int = Query(50, ge=1)) -> Tuple[int, int]:
    return clamp_page(skip, limit)

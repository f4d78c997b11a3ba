# src/client/models.py — v1
"""Transport models: ApiResponse."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ApiResponse(BaseModel):
    """Status and body of a server answer."""

    status_code: int
    message: str = ""
    data: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

"""Validated settings for reconciliation runs."""
from __future__ import annotations

from pathlib import Path
from typing import Dict

from pydantic import BaseModel, Field, field_validator


class ReconcileSettings(BaseModel):
    """Tunables for one paginate-and-validate pass."""

    checkpoint_path: Path = Path("invalidurls.txt")
    page_size: int = Field(default=1000, ge=1)
    max_pages: int = Field(default=20, ge=1)
    concurrency: int = Field(default=20, ge=1)
    timeout_ms: int = Field(default=30 * 1000, gt=0)
    # GET rather than HEAD: some servers never answer HEAD.
    method: str = Field(default="GET", pattern=r"^(GET|HEAD)$")

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return str(value).upper()

    @field_validator("checkpoint_path", mode="before")
    @classmethod
    def _resolve_path(cls, value: str | Path) -> Path:
        if isinstance(value, Path):
            return value
        return Path(value)

    @classmethod
    def from_settings(cls, settings: Dict[str, object]) -> "ReconcileSettings":
        return cls(**settings.get("reconcile", {}))


class FetchSettings(BaseModel):
    user_agent: str = "auditstore-reconciler/0.1"
    max_redirects: int = Field(default=4, ge=0)
    max_connections: int = Field(default=20, ge=1)

    @classmethod
    def from_settings(cls, settings: Dict[str, object]) -> "FetchSettings":
        return cls(**settings.get("fetch", {}))

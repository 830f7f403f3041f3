"""Identifier scope: identifiers are unique only within one tenant/location."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Scope:
    tenant_id: str
    location_id: str

    def __post_init__(self) -> None:
        if not self.tenant_id or not self.location_id:
            raise ValueError("Scope requires both tenant_id and location_id")

    def __str__(self) -> str:
        return f"{self.tenant_id}/{self.location_id}"

"""Pydantic model for one decoded feed row.

Feeds spell the same logical field in many ways. Each field lists its
accepted source keys in priority order; when none match exactly, a
case- and punctuation-insensitive match against the same aliases is tried.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Final, cast

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

FIELD_ALIASES: Final[dict[str, tuple[str, ...]]] = {
    "identifier": ("Serial #", "Serial#", "Serial", "SERIALS", "serial", "identifier"),
    "model": ("Model #", "Model#", "Model", "MODELS", "model"),
    "quantity": ("Inv Qty", "InvQty", "Qty", "QTY", "quantity"),
    "status": ("Availability Status", "AvailabilityStatus", "Status", "status"),
    "message": ("Availability Message", "AvailabilityMessage", "Message", "message"),
    "grouping_key": ("LOAD NUMBER", "Load Number", "sub_inventory", "grouping_key"),
    "order_code": ("ORDC", "Order Code", "order_code"),
    "bucket": ("Bucket", "INV_TYPE", "bucket"),
    "state": ("State", "Load Status", "state"),
}

_KEY_NOISE = re.compile(r"[^a-z0-9]")


def _loose_key(key: str) -> str:
    return _KEY_NOISE.sub("", key.lower())


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, int | float):
        return str(value)
    return value


def _scalar_text(value: object) -> str | None:
    """Attribute text; values that are not scalars read as unknown."""

    cleaned = _blank_to_none(value)
    return cleaned if isinstance(cleaned, str) else None


def _aliases(name: str) -> AliasChoices:
    return AliasChoices(*FIELD_ALIASES[name])


class FeedRow(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    identifier: str | None = Field(default=None, validation_alias=_aliases("identifier"))
    model: str | None = Field(default=None, validation_alias=_aliases("model"))
    quantity: int | None = Field(default=None, validation_alias=_aliases("quantity"))
    status: str | None = Field(default=None, validation_alias=_aliases("status"))
    message: str | None = Field(default=None, validation_alias=_aliases("message"))
    grouping_key: str | None = Field(default=None, validation_alias=_aliases("grouping_key"))
    order_code: str | None = Field(default=None, validation_alias=_aliases("order_code"))
    bucket: str | None = Field(default=None, validation_alias=_aliases("bucket"))
    state: str | None = Field(default=None, validation_alias=_aliases("state"))

    @model_validator(mode="before")
    @classmethod
    def _resolve_loose_keys(cls, value: object) -> object:
        if not isinstance(value, Mapping):
            return value
        data: dict[str, object] = {
            str(key): item for key, item in cast(Mapping[object, object], value).items()
        }
        loose = {_loose_key(key): key for key in reversed(list(data))}
        for aliases in FIELD_ALIASES.values():
            if any(alias in data for alias in aliases):
                continue
            for alias in aliases:
                source_key = loose.get(_loose_key(alias))
                if source_key is not None:
                    data[aliases[0]] = data[source_key]
                    break
        return data

    _clean_identifier = field_validator("identifier", mode="before")(_blank_to_none)

    _clean_text = field_validator(
        "model",
        "status",
        "message",
        "grouping_key",
        "order_code",
        "bucket",
        "state",
        mode="before",
    )(_scalar_text)

    @field_validator("quantity", mode="before")
    @classmethod
    def _parse_quantity(cls, value: object) -> int | None:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if value.is_integer() else None
        if isinstance(value, str):
            text = value.strip().replace(",", "")
            try:
                number = float(text)
            except ValueError:
                return None
            return int(number) if number.is_integer() else None
        return None

"""Shared Pydantic base models and utilities."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SafeLinkBase(BaseModel):
    """Base model with shared config for all SafeLink schemas.

    Payloads are persisted with camelCase keys so that collections written by
    the browser build of SafeLink stay readable.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    def to_payload(self) -> dict:
        """Serialize to the JSON-compatible dict stored under a collection key."""
        return self.model_dump(mode="json", by_alias=True)


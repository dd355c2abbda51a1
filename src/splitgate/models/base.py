# Copyright (c) Syntropy Systems
"""Shared Pydantic model helpers for splitgate."""

from __future__ import annotations

from typing import Any, ClassVar, Union

from pydantic import BaseModel, ConfigDict, JsonValue
from pydantic.alias_generators import to_camel
from typing_extensions import TypeAlias

JSONPrimitive: TypeAlias = Union[str, int, float, bool, None]
JSONValue: TypeAlias = JsonValue
JSONObject: TypeAlias = dict[str, JSONValue]


class SplitgateBaseModel(BaseModel):
    """Base model for the engine's camelCase JSON schemas."""

    model_config: ClassVar[ConfigDict] = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self, **kwargs: Any) -> dict[str, JSONValue]:
        """Dump with camelCase keys, ready to send as a JSON body."""
        return self.model_dump(by_alias=True, mode="json", **kwargs)

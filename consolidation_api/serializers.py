"""
JSON payloads for report DTOs.

Response bodies are built from the frozen dataclasses the statements service
returns.  Amounts go out as strings so no precision is lost to JSON floats;
ids, enums and timestamps become their text forms.
"""

import dataclasses
from collections.abc import Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from functools import singledispatch
from typing import Any
from uuid import UUID


@singledispatch
def to_json_payload(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_json_payload(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, Mapping):
        return {str(to_json_payload(k)): to_json_payload(v) for k, v in obj.items()}
    return str(obj)


@to_json_payload.register(type(None))
@to_json_payload.register(bool)
@to_json_payload.register(int)
@to_json_payload.register(float)
def _(obj):
    return obj


@to_json_payload.register(str)
def _(obj: str) -> str:
    # str-valued enums are str instances; emit their value, not their repr
    return obj.value if isinstance(obj, Enum) else obj


@to_json_payload.register(Enum)
def _(obj: Enum) -> Any:
    return to_json_payload(obj.value)


@to_json_payload.register(Decimal)
@to_json_payload.register(UUID)
def _(obj) -> str:
    return str(obj)


@to_json_payload.register(date)
def _(obj: date) -> str:
    return obj.isoformat()


@to_json_payload.register(list)
@to_json_payload.register(tuple)
@to_json_payload.register(set)
@to_json_payload.register(frozenset)
def _(obj) -> list:
    return [to_json_payload(item) for item in obj]

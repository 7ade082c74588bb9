"""
Declarative validation for action arguments and credentials.

Schemas are pydantic models; constrained field types below carry the
human-readable message reported for a violation. `validate()` never raises:
it returns a `Validation` whose `errors` maps top-level field names to lists
of messages (the flattened field-error shape callers already consume).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Annotated, Any, Callable, Dict, Iterable, List, Mapping, Optional, Type, TypeVar
from urllib.parse import urlparse

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

ROOT_KEY = "_root"
REQUIRED_MESSAGE = "Required"

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

S = TypeVar("S", bound="Schema")


class Schema(BaseModel):
    """
    Base for argument/credential schemas.
    Python attributes are snake_case; the wire names are camelCase aliases.
    Unknown keys are ignored, types are not coerced.
    """

    model_config = ConfigDict(
        strict=True,
        extra="ignore",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class NoCredentials(Schema):
    pass


# ---------------------------
# Constrained field types
# ---------------------------

def _check(predicate: Callable[[Any], bool], message: str) -> AfterValidator:
    def _validator(value: Any) -> Any:
        if not predicate(value):
            raise PydanticCustomError("constraint", message)
        return value

    return AfterValidator(_validator)


def non_empty(message: str) -> Any:
    return Annotated[str, _check(lambda v: len(v) > 0, message)]


def email(message: str = "Invalid email format.") -> Any:
    return Annotated[
        str,
        Field(json_schema_extra={"format": "email"}),
        _check(lambda v: bool(_EMAIL_RE.match(v)), message),
    ]


def positive_int(message: str) -> Any:
    return Annotated[int, _check(lambda v: v > 0, message)]


def int_range(low: int, high: int, message: str) -> Any:
    return Annotated[
        int,
        Field(json_schema_extra={"minimum": low, "maximum": high}),
        _check(lambda v: low <= v <= high, message),
    ]


def one_of(values: Iterable[str], message: str) -> Any:
    allowed = tuple(values)
    return Annotated[
        str,
        Field(json_schema_extra={"enum": list(allowed)}),
        _check(lambda v: v in allowed, message),
    ]


def _is_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def url(message: str) -> Any:
    return Annotated[str, Field(json_schema_extra={"format": "uri"}), _check(_is_url, message)]


# ---------------------------
# Validation
# ---------------------------

@dataclass
class Validation:
    ok: bool
    value: Optional[Any] = None
    errors: Optional[Dict[str, List[str]]] = None


def _flatten(exc: ValidationError) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for item in exc.errors():
        loc = item.get("loc") or ()
        key = str(loc[0]) if loc else ROOT_KEY
        message = REQUIRED_MESSAGE if item.get("type") == "missing" else str(item.get("msg"))
        bucket = errors.setdefault(key, [])
        if message not in bucket:
            bucket.append(message)
    return errors


def validate(schema: Type[S], value: Any) -> Validation:
    if value is None:
        value = {}
    if not isinstance(value, Mapping):
        return Validation(ok=False, errors={ROOT_KEY: ["Expected an object."]})
    try:
        model = schema.model_validate(dict(value))
    except ValidationError as exc:
        return Validation(ok=False, errors=_flatten(exc))
    return Validation(ok=True, value=model)


def json_schema(schema: Type[Schema]) -> Dict[str, Any]:
    out = schema.model_json_schema(by_alias=True)
    out.pop("title", None)
    out.setdefault("properties", {})
    return out

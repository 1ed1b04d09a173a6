"""Shared schema base and validation error helpers.

API payloads use camelCase keys to match the web client, so every schema
derives from ``CamelModel`` which aliases snake_case attributes.
"""
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_api(self, **kwargs) -> Dict[str, Any]:
        """Dump to a JSON-compatible dict keyed by camelCase aliases."""
        return self.model_dump(by_alias=True, mode="json", **kwargs)


_VALUE_ERROR_PREFIX = "Value error, "


def _message_for(error: Dict[str, Any]) -> str:
    msg = str(error.get("msg") or "Invalid request")
    if msg.startswith(_VALUE_ERROR_PREFIX):
        return msg[len(_VALUE_ERROR_PREFIX):]
    if error.get("type") == "missing":
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query")]
        if loc:
            return f"{loc[-1]} is required"
    return msg


def first_error_message(errors: Sequence[Dict[str, Any]]) -> str:
    """Return the client-facing message of the first validation issue."""
    if not errors:
        return "Invalid request"
    return _message_for(errors[0])


def validation_error_message(exc: ValidationError) -> str:
    return first_error_message(exc.errors())


def error_map(exc: ValidationError, fields: Optional[List[str]] = None) -> Dict[str, str]:
    """Map dotted field paths to their first message.

    When ``fields`` is given only issues rooted at those fields are kept.
    """
    out: Dict[str, str] = {}
    for error in exc.errors():
        path = ".".join(str(part) for part in error.get("loc", ()))
        root = path.split(".", 1)[0]
        if fields is not None and root not in fields:
            continue
        out.setdefault(path, _message_for(error))
    return out

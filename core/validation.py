"""
core/validation.py -- Bridge between pydantic input models and InvalidArgument.

Managers validate raw arguments by building a pydantic model. Pydantic's own
ValidationError carries a list of problems; callers only need the first one,
phrased with the field's human title so it can be shown verbatim.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from core.errors import InvalidArgument

ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_input(schema: type[ModelT], **data: Any) -> ModelT:
    """Build `schema` from keyword arguments or raise InvalidArgument.

    The message names the offending field by its Field(title=...) when one is
    set, falling back to the attribute name.
    """
    try:
        return schema(**data)
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = first.get("loc") or ()
        raise InvalidArgument(_describe(schema, loc, first.get("msg", "is invalid"))) from exc


def _describe(schema: type[BaseModel], loc: tuple, msg: str) -> str:
    if not loc:
        # model-level validator
        return msg.removeprefix("Value error, ")
    name = str(loc[0])
    field = schema.model_fields.get(name)
    label = field.title if field is not None and field.title else name
    return f"{label}: {msg.removeprefix('Value error, ')}"

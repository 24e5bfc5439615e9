"""LSP data types and their conversion to and from JSON values"""

from typing import Any, TypeVar

from cattrs.errors import BaseValidationError
from lsprotocol import types
from lsprotocol.converters import get_converter

from .protocol import ErrorCodes, ResponseError

T = TypeVar("T")

converter = get_converter()


def structure(params: Any, cls: type[T]) -> T:
    """Build an lsprotocol object from message params.

    Raises ResponseError with InvalidParams when the params do not fit.
    """
    try:
        return converter.structure(params, cls)
    except (BaseValidationError, KeyError, TypeError, ValueError, AttributeError) as e:
        raise ResponseError(
            ErrorCodes.InvalidParams, f"Invalid params for {cls.__name__}: {e}"
        ) from e


def unstructure(value: Any) -> Any:
    """JSON value for an lsprotocol object, with camelCase keys and unset fields left out"""
    return converter.unstructure(value)


def is_full_change(change: Any) -> bool:
    """True for a content change that carries the whole document text"""
    return getattr(change, "range", None) is None


__all__ = ["converter", "is_full_change", "structure", "types", "unstructure"]

"""
This module is used as a unified resource for various types that are primarily used for type hints.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from typing import (
        Iterable,
        Self,
        Union,
    )

    buf = Union[bytes, bytearray, memoryview]

else:
    buf = Any

    Iterable = Any
    Self = Any


__all__ = [
    'buf',
    'Iterable',
    'Self',
]


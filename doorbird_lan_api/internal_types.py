#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Type hints used internally by this package. Intended to be imported with

    from .internal_types import *
"""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    AsyncContextManager,
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    MutableMapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
    TypeVar,
    Union,
    cast,
  )

from types import TracebackType
from typing_extensions import Self, TypeAlias

HostAndPort: TypeAlias = Tuple[str, int]
"""An (ip_address, port) tuple as used by the socket module."""

Jsonable: TypeAlias = Union[Dict[str, 'Jsonable'], List['Jsonable'], str, int, float, bool, None]
"""A type hint for a value that can be serialized to JSON."""

JsonableDict: TypeAlias = Dict[str, Jsonable]
"""A type hint for a JSON object."""

JsonableTypes = (dict, list, str, int, float, bool)
"""Runtime types accepted as JSON values (None is checked separately)."""

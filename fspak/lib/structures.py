"""
Interfaces and classes to read structured data.
"""
from __future__ import annotations

import enum
import functools
import io

from typing import TYPE_CHECKING, Generic, TypeVar, Union

if TYPE_CHECKING:
    from typing import Self

    from fspak.lib.types import buf

    T = TypeVar('T', bound=Union[bytearray, bytes, memoryview])
else:
    T = TypeVar('T')


class EOF(EOFError):
    """
    While reading from a `fspak.lib.structures.StructReader`, less bytes were available than
    requested. The exception contains the data from the incomplete read.
    """
    def __init__(self, size: int, rest: buf = B''):
        super().__init__(F'Unexpected end of buffer; attempted to read {size} bytes, but got only {len(rest)}.')
        self.rest = rest
        self.size = size


class StructReader(Generic[T]):
    """
    A cursor over a byte buffer which provides methods to read little endian integers and byte
    strings. The underlying buffer is never modified; reads that would cross the end of the buffer
    raise `fspak.lib.structures.EOF` when they are required to be exact.
    """
    def __init__(self, data: T | StructReader[T]):
        if isinstance(data, StructReader):
            self._data = data._data
            self._cursor = data._cursor
        else:
            self._data = data
            self._cursor = 0

    def __len__(self):
        return len(self._data)

    @property
    def eof(self) -> bool:
        return self._cursor >= len(self._data)

    @property
    def remaining_bytes(self) -> int:
        return len(self._data) - self._cursor

    def tell(self) -> int:
        return self._cursor

    def skip(self, n: int):
        self._cursor += n

    def seek(self, offset: int, whence=io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            if offset < 0:
                raise ValueError('no negative offsets allowed for SEEK_SET.')
            self._cursor = offset
        elif whence == io.SEEK_CUR:
            self._cursor += offset
        elif whence == io.SEEK_END:
            self._cursor = len(self._data) + offset
        self._cursor = max(self._cursor, 0)
        self._cursor = min(self._cursor, len(self._data))
        return self._cursor

    def seekset(self, offset: int) -> int:
        if offset < 0:
            return self.seek(offset, io.SEEK_END)
        else:
            return self.seek(offset, io.SEEK_SET)

    def getbuffer(self) -> memoryview:
        return memoryview(self._data)

    def read(self, size: int | None = None, peek: bool = False) -> T:
        beginning = self._cursor
        if size is None or size < 0:
            end = len(self._data)
        else:
            end = min(self._cursor + size, len(self._data))
        result = self._data[beginning:end]
        if not peek:
            self._cursor = end
        return result

    def peek(self, size: int | None = None) -> T:
        return self.read(size, peek=True)

    def read_exactly(self, size: int | None = None, peek: bool = False) -> T:
        """
        Read bytes from the underlying buffer. Raises an exception of type `fspak.lib.structures.EOF`
        when fewer data is available than requested via the `size` parameter. The remaining data can
        be extracted from the exception.
        """
        data = self.read(size, peek)
        if size and len(data) < size:
            raise EOF(size, bytes(data))
        return data

    def read_integer(self, length: int, peek: bool = False, signed: bool = False) -> int:
        """
        Read a little endian integer of the given bit length from the buffer.
        """
        data = self.read_exactly(length // 8, peek)
        return int.from_bytes(data, 'little', signed=signed)

    def u8(self, peek: bool = False) -> int:
        return self.read_integer(8, peek)

    def u16(self, peek: bool = False) -> int:
        return self.read_integer(16, peek)

    def u32(self, peek: bool = False) -> int:
        return self.read_integer(32, peek)


class StructMeta(type):
    """
    A metaclass to facilitate the behavior outlined for `fspak.lib.structures.Struct`.
    """
    def __new__(mcls, name, bases, namespace: dict, **kwargs):
        def parse(cls, reader: T | StructReader[T], *args, **kwargs):
            if not isinstance(reader, StructReader):
                reader = StructReader(reader)
            return cls(reader, *args, **kwargs)

        namespace.update(Parse=classmethod(parse))
        return super().__new__(mcls, name, bases, namespace)

    def __init__(cls, name, bases, nmspc, **_):
        super().__init__(name, bases, nmspc)
        original__init__ = cls.__init__

        @functools.wraps(original__init__)
        def wrapped__init__(self: Struct, reader: StructReader, *args, **kwargs):
            start = reader.tell()
            view = reader.getbuffer()
            original__init__(self, reader, *args, **kwargs)
            self._data = view[start:reader.tell()]
            del view

        setattr(cls, '__init__', wrapped__init__)


class Struct(metaclass=StructMeta):
    """
    A class to parse structured data. A `fspak.lib.structures.Struct` class can be instantiated
    as follows:

        foo = Struct.Parse(data, bar=29)

    The initialization routine of the structure will be called with a single argument `reader`. If
    the object `data` is already a `fspak.lib.structures.StructReader`, then it will be passed
    as `reader`. Otherwise, the argument will be wrapped in a `fspak.lib.structures.StructReader`.
    Additional arguments to the struct are passed through. The number of bytes that were consumed
    during parsing is available via `len`.
    """
    _data: memoryview

    @classmethod
    def Parse(cls, reader: buf | StructReader, *args, **kwargs) -> Self:
        ...

    def __len__(self):
        return len(self._data)

    def __init__(self, reader: StructReader, *args, **kwargs):
        pass


class FlagAccessMixin:
    """
    This class can be mixed into an `enum.IntFlag` so that flags can be tested as attributes:

        class Flags(FlagAccessMixin, enum.IntFlag):
            IsBinary = 1
            IsCompressed = 2

        flag = Flags(3)

        if flag.IsCompressed:
            decompress()
    """
    def __getattribute__(self, name: str):
        if not isinstance(self, enum.IntFlag):
            raise RuntimeError
        if not name.startswith('_'):
            try:
                flag = self.__class__[name]
            except KeyError:
                pass
            else:
                return flag in self
        return super().__getattribute__(name)

    def __repr__(self):
        if not isinstance(self, enum.IntFlag):
            raise RuntimeError
        if name := self.name:
            return name
        return super().__repr__()

"""
Pointer-chain reader.

Resolves a module-relative pointer path against a foreign address space
and reads a typed value at the end of it.  The only unsafe operation,
reading another process's memory, stays behind the `MemorySource`
protocol so tests can swap in a plain byte buffer.

A path is walked the same way a Cheat Engine pointer is:

    root  = base(module) + base_address
    addr  = [root]
    addr  = [addr + off0]
    ...
    final = addr + offN          (not dereferenced)

Any unreadable step, or a null pointer mid-chain, fails the whole read.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, Union

log = logging.getLogger(__name__)

POINTER_SIZE = 8
DEFAULT_STRING_LENGTH = 256

Value = Union[int, bool, bytes, str]


class MemorySource(Protocol):
    """Anything that can read bytes out of a foreign address space."""

    def read(self, address: int, size: int) -> bytes | None: ...

    def get_base_address(self, module_name: str) -> int | None: ...


class ValueType(str, Enum):
    """How the bytes at the end of a chain are interpreted."""
    INT32 = "int32"
    INT64 = "int64"
    POINTER = "pointer"
    BOOL = "bool"
    BYTES = "bytes"
    STRING = "string"


# struct format and byte size for the fixed-width types
_SCALARS: dict[ValueType, tuple[str, int]] = {
    ValueType.INT32: ("<i", 4),
    ValueType.INT64: ("<q", 8),
    ValueType.POINTER: ("<Q", 8),
}


@dataclass(frozen=True)
class OffsetPath:
    """
    A module-relative pointer chain identifying one logical field.

    Reads: [[[base(module) + address] + offsets[0]] + ...] + offsets[-1]
    """
    module_name: str
    base_address: int
    offsets: tuple[int, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # accept any iterable but store a tuple so the path stays immutable
        object.__setattr__(self, "offsets", tuple(self.offsets))

    def __str__(self) -> str:
        chain = ", ".join(f"0x{o:X}" for o in self.offsets)
        return f"{self.module_name}+0x{self.base_address:X} [{chain}]"


def _safe_read(source: MemorySource, address: int, size: int) -> bytes | None:
    try:
        data = source.read(address, size)
    except OSError as exc:
        log.debug("read of %d bytes at 0x%X raised %s", size, address, exc)
        return None
    if data is None or len(data) != size:
        return None
    return bytes(data)


def read_pointer(source: MemorySource, address: int,
                 pointer_size: int = POINTER_SIZE) -> int | None:
    """Read one pointer-sized little-endian value."""
    data = _safe_read(source, address, pointer_size)
    if data is None:
        return None
    return int.from_bytes(data, "little", signed=False)


def resolve_address(source: MemorySource, path: OffsetPath,
                    pointer_size: int = POINTER_SIZE) -> int | None:
    """
    Follow `path` to its final address.

    Returns None if the module is not loaded, any intermediate read fails,
    or an intermediate pointer is null.
    """
    try:
        module_base = source.get_base_address(path.module_name)
    except OSError:
        module_base = None
    if not module_base:
        return None

    # the root is always dereferenced before the first offset is applied
    steps = (0,) + path.offsets
    addr = module_base + path.base_address
    for offset in steps[:-1]:
        ptr = read_pointer(source, addr + offset, pointer_size)
        if not ptr:
            return None
        addr = ptr
    return addr + steps[-1]


def decode(data: bytes, value_type: ValueType) -> Value:
    """Interpret raw bytes read at the end of a chain."""
    if value_type == ValueType.BOOL:
        return data[0] != 0
    if value_type == ValueType.BYTES:
        return data
    if value_type == ValueType.STRING:
        null_pos = data.find(b"\x00")
        if null_pos >= 0:
            data = data[:null_pos]
        return data.decode("ascii", errors="replace")
    fmt, _ = _SCALARS[value_type]
    return struct.unpack(fmt, data)[0]


def value_size(value_type: ValueType, size: int | None = None) -> int:
    """Number of bytes a read of `value_type` consumes."""
    if value_type == ValueType.BOOL:
        return 1
    if value_type in _SCALARS:
        return _SCALARS[value_type][1]
    if value_type == ValueType.STRING:
        return size or DEFAULT_STRING_LENGTH
    if size is None or size <= 0:
        raise ValueError("a byte-buffer read needs a positive size")
    return size


def read_value(source: MemorySource, path: OffsetPath, value_type: ValueType,
               size: int | None = None,
               pointer_size: int = POINTER_SIZE) -> Value | None:
    """
    Resolve `path` and read one typed value at the final address.

    Returns None on any failure; a partially read value is never returned.
    """
    nbytes = value_size(value_type, size)
    addr = resolve_address(source, path, pointer_size)
    if addr is None:
        return None

    if value_type == ValueType.STRING:
        return _read_string(source, addr, nbytes)

    data = _safe_read(source, addr, nbytes)
    if data is None:
        return None
    return decode(data, value_type)


def _read_string(source: MemorySource, address: int, max_len: int) -> str | None:
    """Null-terminated ASCII string, shrinking the read near a page end."""
    length = max_len
    while length > 0:
        data = _safe_read(source, address, length)
        if data is not None:
            # a shortened read must still contain the terminator
            if length < max_len and b"\x00" not in data:
                return None
            return decode(data, ValueType.STRING)
        length //= 2
    return None

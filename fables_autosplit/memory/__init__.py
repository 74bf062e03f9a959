"""
Process binding, pointer-chain reads and offset tables for Bug Fables.
"""

from .game_memory import BindingState, GameMemory, Snapshot, defeated_count
from .offsets import VARIANTS, Field, GameVersion, OffsetTable, select_version
from .process import ModuleInfo, ProcessAttacher, ProcessInfo, find_process
from .reader import MemorySource, OffsetPath, ValueType, read_value, resolve_address

__all__ = [
    "BindingState",
    "GameMemory",
    "Snapshot",
    "defeated_count",
    "VARIANTS",
    "Field",
    "GameVersion",
    "OffsetTable",
    "select_version",
    "ModuleInfo",
    "ProcessAttacher",
    "ProcessInfo",
    "find_process",
    "MemorySource",
    "OffsetPath",
    "ValueType",
    "read_value",
    "resolve_address",
]

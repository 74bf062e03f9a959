"""
Version-keyed offset tables for Bug Fables.

Each supported build of the game gets one immutable `OffsetTable`.  All of
the game state we need hangs off the MainManager static reachable from the
Mono runtime module, so a table only has to say which Mono module to
anchor on, where the MainManager static lives in it, and the prefix that
leads from there to the class statics.

Offsets were found with Cheat Engine on 1.1.0 and 1.1.3 (64-bit).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .reader import OffsetPath


class OffsetTableError(KeyError):
    """Raised when a logical field has no path in a table."""


class GameVersion(str, Enum):
    V110 = "1.1.0"
    V113_MONO_BLEEDING_EDGE = "1.1.3"


class Field(str, Enum):
    """Logical fields read from the game."""
    FLAGS = "flags"
    ENEMY_ENCOUNTER = "enemy_encounter"
    CURRENT_ROOM_ID = "current_room_id"
    CURRENT_ROOM_NAME = "current_room_name"
    FIRST_MUSIC_ID = "first_music_id"
    MUSIC_COROUTINE = "music_coroutine"
    BATTLE = "battle"
    BATTLE_CONTROLLER = "battle_controller"
    IN_EVENT = "in_event"
    LAST_EVENT = "last_event"


# ── general purpose ──────────────────────────────────────────────────
ARRAY_FIRST_ELEMENT = 0x20     # Mono array header size
UNITY_CACHED_PTR    = 0x10     # UnityEngine.Object.m_CachedPtr

# ── MainManager statics ──────────────────────────────────────────────
MM_INSTANCE         = 0x10
MM_MAP              = 0x20
MM_BATTLE           = 0x40
MM_MUSIC_COROUTINE  = 0x58
MM_MUSIC_ID_ARRAY   = 0x160
MM_LAST_EVENT       = 0x3B0

# ── MainManager instance ─────────────────────────────────────────────
MMI_FLAGS_ARRAY     = 0x160
MMI_ENEMY_ENCOUNTER = 0x190
MMI_IN_EVENT        = 0x25E

# ── MapControl instance ──────────────────────────────────────────────
MAP_CONTROL_MAP_ID  = 0x108

# native GameObject -> name string
UNITY_GAME_OBJECT_NAME = (UNITY_CACHED_PTR, 0x30, 0x60, 0x0)

NUM_FLAGS = 750
NUM_ENEMIES = 256
ENEMY_ENTRY_SIZE = 2 * 4       # (times encountered, times defeated) as int32
ENEMY_ENCOUNTER_SIZE = NUM_ENEMIES * ENEMY_ENTRY_SIZE

# path suffix appended to the table prefix, per field
FIELD_SUFFIXES: dict[Field, tuple[int, ...]] = {
    Field.FLAGS:             (MM_INSTANCE, MMI_FLAGS_ARRAY, ARRAY_FIRST_ELEMENT),
    Field.ENEMY_ENCOUNTER:   (MM_INSTANCE, MMI_ENEMY_ENCOUNTER, ARRAY_FIRST_ELEMENT),
    Field.CURRENT_ROOM_ID:   (MM_MAP, MAP_CONTROL_MAP_ID),
    Field.CURRENT_ROOM_NAME: (MM_MAP,) + UNITY_GAME_OBJECT_NAME,
    Field.FIRST_MUSIC_ID:    (MM_MUSIC_ID_ARRAY, ARRAY_FIRST_ELEMENT),
    Field.MUSIC_COROUTINE:   (MM_MUSIC_COROUTINE,),
    Field.BATTLE:            (MM_BATTLE, UNITY_CACHED_PTR),
    Field.BATTLE_CONTROLLER: (MM_BATTLE,),
    Field.IN_EVENT:          (MM_INSTANCE, MMI_IN_EVENT),
    Field.LAST_EVENT:        (MM_LAST_EVENT,),
}


@dataclass(frozen=True)
class OffsetTable:
    """Where every logical field lives for one build of the game."""
    version: GameVersion
    module_name: str
    base_address: int
    prefix: tuple[int, ...]
    num_flags: int = NUM_FLAGS
    enemy_encounter_size: int = ENEMY_ENCOUNTER_SIZE

    def path(self, field: Field) -> OffsetPath:
        try:
            suffix = FIELD_SUFFIXES[field]
        except KeyError:
            raise OffsetTableError(f"no offset path for field {field!r}") from None
        return OffsetPath(self.module_name, self.base_address, self.prefix + suffix)

    def paths(self) -> dict[Field, OffsetPath]:
        return {f: self.path(f) for f in FIELD_SUFFIXES}


VARIANTS: dict[GameVersion, OffsetTable] = {
    GameVersion.V110: OffsetTable(
        version=GameVersion.V110,
        module_name="mono.dll",
        base_address=0x00501AC8,
        prefix=(0x20, 0x150),
    ),
    GameVersion.V113_MONO_BLEEDING_EDGE: OffsetTable(
        version=GameVersion.V113_MONO_BLEEDING_EDGE,
        module_name="mono-2.0-bdwgc.dll",
        base_address=0x0048FA90,
        prefix=(0xBD0, 0x0, 0x60),
    ),
}

NEWEST_VERSION = GameVersion.V113_MONO_BLEEDING_EDGE

# checked in this order when a process somehow has both loaded
VERSION_PRIORITY = (GameVersion.V113_MONO_BLEEDING_EDGE, GameVersion.V110)


def select_version(module_names: Iterable[str]) -> tuple[GameVersion, bool]:
    """
    Pick the table matching the loaded Mono runtime.

    Returns (version, recognized).  An unrecognized module set falls back to
    the newest known version with recognized=False.
    """
    loaded = {name.lower() for name in module_names}
    for version in VERSION_PRIORITY:
        if VARIANTS[version].module_name.lower() in loaded:
            return version, True
    return NEWEST_VERSION, False

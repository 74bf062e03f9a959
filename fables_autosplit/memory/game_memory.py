"""
Process binding and typed game-state accessors for Bug Fables.

`GameMemory.hook()` is called on every poll.  It attaches when the game
appears, picks the offset table matching the loaded Mono runtime, and
throws everything away when the game goes away.  All accessors return
None when unbound or when any step of their pointer chain is unreadable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import numpy as np

from .offsets import VARIANTS, Field, GameVersion, OffsetTable, select_version
from .process import ProcessAttacher, ProcessInfo, find_process
from .reader import OffsetPath, ValueType, read_value

log = logging.getLogger(__name__)

PROCESS_NAME = "Bug Fables"


class BindingState(str, Enum):
    UNBOUND = "unbound"
    BINDING = "binding"
    BOUND = "bound"


@dataclass(frozen=True)
class Snapshot:
    """
    One poll's worth of game state.

    Only the fields a decision needs are filled in; a None field was not
    read, never "read as nothing".
    """
    flags: Optional[bytes] = None
    enemy_encounter: Optional[bytes] = None
    room_id: Optional[int] = None
    song_id: Optional[int] = None
    music_coroutine: Optional[int] = None
    battle_ptr: Optional[int] = None
    in_event: Optional[bool] = None
    last_event: Optional[int] = None

    def flag(self, index: int) -> bool:
        return self.flags[index] != 0


def encounter_table(enemy_encounter: bytes) -> np.ndarray:
    """View the raw table as rows of (times encountered, times defeated)."""
    return np.frombuffer(enemy_encounter, dtype="<i4").reshape(-1, 2)


def defeated_count(enemy_encounter: bytes, enemy_id: int) -> int:
    """Times defeated for `enemy_id`, the int32 at byte `enemy_id * 8 + 4`."""
    return int(encounter_table(enemy_encounter)[int(enemy_id), 1])


class GameMemory:
    """
    Owns the binding to one running game process.

    The process finder and attacher factory are injectable so the binding
    can be driven against a synthetic process in tests.
    """

    def __init__(
        self,
        process_name: str = PROCESS_NAME,
        process_finder: Callable[[str], ProcessInfo | None] = find_process,
        attacher_factory: Callable[[], ProcessAttacher] = ProcessAttacher,
    ):
        self.process_name = process_name
        self._find = process_finder
        self._new_attacher = attacher_factory

        self._state = BindingState.UNBOUND
        self._process: ProcessInfo | None = None
        self._attacher: ProcessAttacher | None = None
        self._table: OffsetTable | None = None
        self._paths: dict[Field, OffsetPath] = {}
        self.degraded = False

    # ---------------------------------------------------------------- binding
    @property
    def state(self) -> BindingState:
        return self._state

    @property
    def is_bound(self) -> bool:
        return self._state == BindingState.BOUND

    @property
    def version(self) -> GameVersion | None:
        return self._table.version if self._table else None

    @property
    def table(self) -> OffsetTable | None:
        return self._table

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    def hook(self) -> bool:
        """
        (Re)establish the binding.  Safe to call on every poll.

        Returns True while bound.
        """
        proc = self._find(self.process_name)

        if self.is_bound and proc is not None:
            if proc.pid == self._process.pid:
                return True
            log.info("%s restarted (pid %d -> %d), rebinding",
                     self.process_name, self._process.pid, proc.pid)
            self.unbind()

        if not self.is_bound and proc is None:
            return False

        if proc is None:
            log.info("%s (pid %d) exited, unbinding", self.process_name, self._process.pid)
            self.unbind()
            return False

        return self._bind(proc)

    def _bind(self, proc: ProcessInfo) -> bool:
        self._state = BindingState.BINDING

        attacher = self._new_attacher()
        if not attacher.attach(proc.pid):
            log.warning("Could not open %s (pid %d)", proc.name, proc.pid)
            self._state = BindingState.UNBOUND
            return False

        version, recognized = select_version(m.name for m in attacher.modules)
        if not recognized:
            log.warning("No known Mono runtime loaded in %s; assuming version %s",
                        proc.name, version.value)

        table = VARIANTS[version]
        self._attacher = attacher
        self._process = proc
        self._table = table
        self._paths = table.paths()
        self.degraded = not recognized
        self._state = BindingState.BOUND
        log.info("Bound to %s pid=%d version=%s", proc.name, proc.pid, version.value)
        return True

    def unbind(self):
        """Drop the process handle, the table and every resolved path."""
        if self._attacher is not None:
            self._attacher.detach()
        self._attacher = None
        self._process = None
        self._table = None
        self._paths = {}
        self.degraded = False
        self._state = BindingState.UNBOUND

    # ---------------------------------------------------------------- reads
    def _read(self, field: Field, value_type: ValueType, size: int | None = None):
        if not self.is_bound:
            return None
        return read_value(self._attacher, self._paths[field], value_type, size)

    def _read_exact(self, field: Field, size: int) -> bytes | None:
        data = self._read(field, ValueType.BYTES, size)
        if data is None or len(data) != size:
            return None
        return data

    def read_flags(self) -> bytes | None:
        if not self.is_bound:
            return None
        return self._read_exact(Field.FLAGS, self._table.num_flags)

    def read_enemy_encounter(self) -> bytes | None:
        if not self.is_bound:
            return None
        return self._read_exact(Field.ENEMY_ENCOUNTER, self._table.enemy_encounter_size)

    def read_current_room_id(self) -> int | None:
        return self._read(Field.CURRENT_ROOM_ID, ValueType.INT32)

    def read_current_room_name(self) -> str | None:
        return self._read(Field.CURRENT_ROOM_NAME, ValueType.STRING)

    def read_first_music_id(self) -> int | None:
        return self._read(Field.FIRST_MUSIC_ID, ValueType.INT32)

    def read_music_coroutine(self) -> int | None:
        return self._read(Field.MUSIC_COROUTINE, ValueType.INT64)

    def read_battle_ptr(self) -> int | None:
        """
        Current battle object, 0 when not in battle.

        Outside of battle the battle field's cached native pointer is not
        reachable, so fall back to the managed field itself: if that
        resolves, there simply is no battle.
        """
        battle = self._read(Field.BATTLE, ValueType.POINTER)
        if battle is not None:
            return battle
        if self._read(Field.BATTLE_CONTROLLER, ValueType.POINTER) is None:
            return None
        return 0

    def read_in_event(self) -> bool | None:
        return self._read(Field.IN_EVENT, ValueType.BOOL)

    def read_last_event(self) -> int | None:
        return self._read(Field.LAST_EVENT, ValueType.INT32)

    # ---------------------------------------------------------------- snapshots
    def read_start_snapshot(self) -> Snapshot | None:
        flags = self.read_flags()
        if flags is None:
            return None
        in_event = self.read_in_event()
        if in_event is None:
            return None
        last_event = self.read_last_event()
        if last_event is None:
            return None
        return Snapshot(flags=flags, in_event=in_event, last_event=last_event)

    def read_split_snapshot(self) -> Snapshot | None:
        room_id = self.read_current_room_id()
        if room_id is None:
            return None
        flags = self.read_flags()
        if flags is None:
            return None
        enemy_encounter = self.read_enemy_encounter()
        if enemy_encounter is None:
            return None
        battle_ptr = self.read_battle_ptr()
        if battle_ptr is None:
            return None
        return Snapshot(flags=flags, enemy_encounter=enemy_encounter,
                        room_id=room_id, battle_ptr=battle_ptr)

    def read_end_snapshot(self) -> Snapshot | None:
        song_id = self.read_first_music_id()
        if song_id is None:
            return None
        music_coroutine = self.read_music_coroutine()
        if music_coroutine is None:
            return None
        room_id = self.read_current_room_id()
        if room_id is None:
            return None
        return Snapshot(song_id=song_id, music_coroutine=music_coroutine, room_id=room_id)

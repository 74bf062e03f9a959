"""
Split decision engine.

Every decision is a pure function of (EngineState, Snapshot) returning the
next EngineState and whether the timer should act.  A None snapshot means
the game could not be read this poll: the answer is False and the state is
returned untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

import numpy as np

from ..config import Split, SplitList, SplitMode
from ..game_enums import Event, Flag, Room, Song
from ..memory.game_memory import Snapshot, encounter_table

NEW_GAME_STARTED_FLAG = int(Flag.NEW_GAME_STARTED)
NEW_GAME_EVENT = int(Event.NEW_GAME)
END_ROOM = int(Room.BUGARIA_END_THRONE)
LEVEL_UP_SONG = int(Song.LEVEL_UP)


class EndState(str, Enum):
    """Progress through the final cutscene, in order."""
    NOT_ARRIVED_YET = "not_arrived_yet"
    ARRIVED_IN_ROOM = "arrived_in_room"
    SONG_LEVEL_UP_STARTING = "song_level_up_starting"
    SONG_LEVEL_IS_PLAYING = "song_level_is_playing"
    SONG_IS_FADING = "song_is_fading"


@dataclass(frozen=True)
class EngineState:
    """
    Everything the engine remembers between polls.

    last_new_game_started starts out True so that hooking into a game that
    is already past the intro never looks like a fresh start.
    """
    last_new_game_started: bool = True
    baseline: Optional[bytes] = None
    end_state: EndState = EndState.NOT_ARRIVED_YET


Decision = tuple[EngineState, bool]


def decide_start(state: EngineState, snap: Snapshot | None) -> Decision:
    """
    Fire on the False -> True edge of the new-game flag, but only inside the
    new-game event: loading a save sets the same flag from elsewhere.
    """
    if snap is None:
        return state, False

    new_flag = snap.flag(NEW_GAME_STARTED_FLAG)
    should_start = (
        new_flag
        and not state.last_new_game_started
        and bool(snap.in_event)
        and snap.last_event == NEW_GAME_EVENT
    )
    return replace(state, last_new_game_started=new_flag), should_start


# ─── mid splits ──────────────────────────────────────────────────────

def room_check(split: Split, room_id: int) -> bool:
    return split.required_room is None or split.required_room == room_id


def flags_check(split: Split, snap: Snapshot) -> bool:
    # a flag past the end of the array is never set
    num_flags = len(snap.flags)
    return all(0 <= f < num_flags and snap.flag(f) for f in split.required_flags)


def enemies_check(split: Split, snap: Snapshot, baseline: bytes) -> bool:
    """Every required enemy was defeated more often than at the baseline."""
    if not split.required_enemies:
        return True
    if snap.battle_ptr != 0:
        return False
    ids = list(split.required_enemies)
    fresh_table = encounter_table(snap.enemy_encounter)
    old_table = encounter_table(baseline)
    rows = min(len(fresh_table), len(old_table))
    if any(not 0 <= i < rows for i in ids):
        return False
    return bool(np.all(fresh_table[ids, 1] > old_table[ids, 1]))


def decide_mid_split(state: EngineState, snap: Snapshot | None,
                     split: Split | None) -> Decision:
    """
    Room and flags gate the split; on a gate miss the baseline follows the
    live table so kills elsewhere don't count later.  A miss on the kill
    check keeps the baseline so partial progress accumulates.
    """
    if snap is None or split is None:
        return state, False

    baseline = state.baseline
    if baseline is None:
        baseline = snap.enemy_encounter

    if not room_check(split, snap.room_id) or not flags_check(split, snap):
        return replace(state, baseline=snap.enemy_encounter), False

    if not enemies_check(split, snap, baseline):
        return replace(state, baseline=baseline), False

    return replace(state, baseline=snap.enemy_encounter), True


# ─── end split ───────────────────────────────────────────────────────

def next_end_state(current: EndState, snap: Snapshot) -> EndState:
    """Advance at most one step; anything unexpected leaves the state alone."""
    coroutine_running = snap.music_coroutine != 0

    if current == EndState.NOT_ARRIVED_YET:
        if snap.room_id == END_ROOM:
            return EndState.ARRIVED_IN_ROOM
    elif current == EndState.ARRIVED_IN_ROOM:
        if snap.song_id == LEVEL_UP_SONG:
            return EndState.SONG_LEVEL_UP_STARTING
    elif current == EndState.SONG_LEVEL_UP_STARTING:
        if not coroutine_running:
            return EndState.SONG_LEVEL_IS_PLAYING
    elif current == EndState.SONG_LEVEL_IS_PLAYING:
        if coroutine_running:
            return EndState.SONG_IS_FADING
    elif current == EndState.SONG_IS_FADING:
        if not coroutine_running:
            return EndState.NOT_ARRIVED_YET
    return current


def decide_end(state: EngineState, snap: Snapshot | None) -> Decision:
    """Fire once the level-up jingle in the throne room has faded out."""
    if snap is None:
        return state, False

    new_end = next_end_state(state.end_state, snap)
    finished = (state.end_state == EndState.SONG_IS_FADING
                and new_end == EndState.NOT_ARRIVED_YET)
    return replace(state, end_state=new_end), finished


# ─── dispatch ────────────────────────────────────────────────────────

def is_end_split(splits: SplitList, current_index: int, total_splits: int) -> bool:
    return splits.mode == SplitMode.START_END_ONLY or current_index == total_splits - 1


def decide_split(
    state: EngineState,
    splits: SplitList,
    current_index: int,
    total_splits: int,
    read_split: Callable[[], Snapshot | None],
    read_end: Callable[[], Snapshot | None],
) -> Decision:
    """
    Route to the end sequence for the last split (or in start/end mode),
    otherwise evaluate the configured split at `current_index`.  Only the
    snapshot the chosen decision needs is read.
    """
    if is_end_split(splits, current_index, total_splits):
        return decide_end(state, read_end())

    if not 0 <= current_index < len(splits):
        return state, False
    return decide_mid_split(state, read_split(), splits[current_index])

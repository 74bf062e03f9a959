"""
Timer-facing split logic.

`SplitterLogic` answers the three questions a timer host polls:
should the run start, should it split, and reset.  It reads one snapshot
per question, hands it to the pure engine, and keeps the returned state.
Nothing raised while reading the game ever reaches the host.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Callable

from ..config import SplitList
from ..debug.trace import DiagnosticSink, NullSink
from ..memory.game_memory import GameMemory, Snapshot
from .engine import EngineState, decide_split, decide_start, is_end_split

log = logging.getLogger(__name__)


class SplitterLogic:
    """
    Stateful wrapper around the decision engine for one game binding.

    Args:
        game_memory: Bound (or bindable) game memory to read snapshots from.
        split_source: Returns the current split list; called at start-up
            and again on every reset.
        sink: Where decision edges and read-failure transitions are noted.
    """

    def __init__(
        self,
        game_memory: GameMemory,
        split_source: Callable[[], SplitList],
        sink: DiagnosticSink | None = None,
    ):
        self.memory = game_memory
        self._split_source = split_source
        self.sink = sink if sink is not None else NullSink()
        self.state = EngineState()
        self.splits = split_source()
        self._read_failing: dict[str, bool] = {}
        self._note("STARTED")

    def _note(self, message: str):
        log.debug(message)
        self.sink.write(message)

    def _snapshot(self, query: str, reader: Callable[[], Snapshot | None]) -> Snapshot | None:
        """Read one snapshot, noting only when reads start or stop failing."""
        error = None
        try:
            snap = reader()
        except Exception as e:
            error = e
            snap = None

        failing = snap is None
        if failing != self._read_failing.get(query, False):
            if error is not None:
                log.error("%s: unexpected error while reading memory", query, exc_info=error)
                self._note(f"{query}: Unhandled exception while reading memory: {error}")
            elif failing:
                self._note(f"{query}: Couldn't read the game memory")
            else:
                self._note(f"{query}: Reading the game memory again")
            self._read_failing[query] = failing
        return snap

    # ---------------------------------------------------------------- queries
    def should_start(self) -> bool:
        snap = self._snapshot("ShouldStart", self.memory.read_start_snapshot)
        self.state, start = decide_start(self.state, snap)
        if start:
            self._note("ShouldStart: NewGameStarted went True in the new game event")
        return start

    def should_split(self, current_index: int, total_splits: int) -> bool:
        old = self.state
        end = is_end_split(self.splits, current_index, total_splits)
        self.state, split = decide_split(
            self.state,
            self.splits,
            current_index,
            total_splits,
            read_split=lambda: self._snapshot("ShouldSplit", self.memory.read_split_snapshot),
            read_end=lambda: self._snapshot("ShouldEnd", self.memory.read_end_snapshot),
        )

        if end:
            if self.state.end_state != old.end_state:
                self._note(f"ShouldEnd: {old.end_state.value} -> {self.state.end_state.value}")
            if split:
                self._note("ShouldEnd: The level up song is done fading")
        elif split:
            name = self.splits[current_index].name
            self._note(f"ShouldSplit: split {current_index} ({name}) reached")
        return split

    def reset(self):
        """Forget the run and reload the split list."""
        self.state = EngineState()
        try:
            self.splits = self._split_source()
        except (OSError, ValueError) as e:
            log.error("Could not reload splits, keeping the previous list: %s", e)
        self._note("LOGIC RESET")


class AutoSplitter:
    """
    One game binding plus its split logic behind a single lock.

    Hooking the process and every query touch the same binding, so they
    are serialized even if the host polls from more than one thread.
    """

    def __init__(self, game_memory: GameMemory, logic: SplitterLogic):
        self.memory = game_memory
        self.logic = logic
        self._lock = Lock()

    @classmethod
    def create(
        cls,
        split_source: Callable[[], SplitList],
        sink: DiagnosticSink | None = None,
        game_memory: GameMemory | None = None,
    ) -> AutoSplitter:
        memory = game_memory or GameMemory()
        return cls(memory, SplitterLogic(memory, split_source, sink))

    def poll(self) -> bool:
        """Hook or unhook the game; True while bound."""
        with self._lock:
            return self.memory.hook()

    def should_start(self) -> bool:
        with self._lock:
            return self.logic.should_start()

    def should_split(self, current_index: int, total_splits: int) -> bool:
        with self._lock:
            return self.logic.should_split(current_index, total_splits)

    def reset(self):
        with self._lock:
            self.logic.reset()

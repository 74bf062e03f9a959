from .engine import EndState, EngineState, decide_end, decide_mid_split, decide_split, decide_start
from .logic import AutoSplitter, SplitterLogic

__all__ = [
    "EndState",
    "EngineState",
    "decide_end",
    "decide_mid_split",
    "decide_split",
    "decide_start",
    "AutoSplitter",
    "SplitterLogic",
]

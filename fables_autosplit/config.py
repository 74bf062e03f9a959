"""
Configuration models and loaders for fables-autosplit.
Uses Pydantic for validation and TOML for file format.
"""

from __future__ import annotations

import sys
from enum import Enum, IntEnum
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from pydantic import BaseModel, Field, field_validator

from .game_enums import Enemy, Flag, Room
from .memory.offsets import NUM_ENEMIES, NUM_FLAGS


def _to_id(value: Any, enum_cls: type[IntEnum], limit: int | None = None) -> int:
    """Accept a raw id or an enum member name ("SPIDER", "spider")."""
    if isinstance(value, bool):
        raise ValueError(f"expected an id or {enum_cls.__name__} name, got {value!r}")
    if isinstance(value, str):
        try:
            return int(enum_cls[value.strip().upper()])
        except KeyError:
            raise ValueError(f"unknown {enum_cls.__name__} name {value!r}") from None
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{enum_cls.__name__} id must be a whole number, got {value!r}")
    value = int(value)
    if value < 0:
        raise ValueError(f"{enum_cls.__name__} id must not be negative")
    if limit is not None and value >= limit:
        raise ValueError(f"{enum_cls.__name__} id {value} is out of range (0..{limit - 1})")
    return value


def _load_toml(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    with path.open("rb") as f:
        return tomllib.load(f)


class Split(BaseModel):
    """
    One split criterion.

    Unset constraints are vacuously satisfied: no room means any room,
    no flags means no flag requirement, no enemies means no kill needed.
    """
    model_config = {"frozen": True}

    name: str
    group: str = ""
    required_room: int | None = None
    required_flags: tuple[int, ...] = ()
    required_enemies: tuple[int, ...] = ()

    @field_validator("required_room", mode="before")
    @classmethod
    def validate_room(cls, v: Any) -> int | None:
        if v is None:
            return None
        if isinstance(v, str) and v.strip().upper() == Room.UNASSIGNED.name:
            return None
        if isinstance(v, int) and not isinstance(v, bool) and v == Room.UNASSIGNED:
            return None
        return _to_id(v, Room)

    @field_validator("required_flags", mode="before")
    @classmethod
    def validate_flags(cls, v: Any) -> tuple[int, ...]:
        return tuple(_to_id(f, Flag, NUM_FLAGS) for f in (v or ()))

    @field_validator("required_enemies", mode="before")
    @classmethod
    def validate_enemies(cls, v: Any) -> tuple[int, ...]:
        return tuple(_to_id(e, Enemy, NUM_ENEMIES) for e in (v or ()))


class SplitMode(str, Enum):
    ALL = "all"
    START_END_ONLY = "start_end_only"


class SplitList(BaseModel):
    """Ordered splits plus the evaluation mode."""
    mode: SplitMode = SplitMode.ALL
    splits: list[Split] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.splits)

    def __getitem__(self, index: int) -> Split:
        return self.splits[index]

    @classmethod
    def from_toml(cls, path: str | Path) -> SplitList:
        """Load a split list from TOML file."""
        return cls.model_validate(_load_toml(path))


class AppConfig(BaseModel):
    """Runtime settings for the command-line host."""
    process_name: str = "Bug Fables"
    poll_interval_ms: int = Field(default=50, ge=1, le=1000)
    log_file: str = "fables-autosplit-log.txt"
    log_max_age_days: int = Field(default=30, ge=1)
    splits_file: str = "configs/glitchless.toml"

    @field_validator("process_name")
    @classmethod
    def validate_process_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("process_name must not be empty")
        return v

    @classmethod
    def from_toml(cls, path: str | Path) -> AppConfig:
        """
        Load app settings from TOML file.

        A relative `splits_file` given in the file is taken relative to the
        file's own directory, not the working directory.
        """
        path = Path(path)
        data = _load_toml(path)
        splits_file = data.get("splits_file")
        if isinstance(splits_file, str) and splits_file:
            data["splits_file"] = str(path.parent / splits_file)
        return cls.model_validate(data)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()

"""Game identifiers used by the split logic and split files."""

from __future__ import annotations

from enum import IntEnum


class Flag(IntEnum):
    """Indices into the MainManager flag array."""
    NEW_GAME_STARTED = 11
    CHAPTER_1_DONE = 59
    CHAPTER_2_DONE = 120
    CHAPTER_3_DONE = 205
    CHAPTER_4_DONE = 299
    CHAPTER_5_DONE = 390
    CHAPTER_6_DONE = 475
    CHAPTER_7_DONE = 560


class Event(IntEnum):
    """Scripted event ids as stored in MainManager.lastevent."""
    NEW_GAME = 1


class Room(IntEnum):
    """Map ids read from MapControl.mapid."""
    UNASSIGNED = -1
    SNAKEMOUTH_DEN = 11
    GOLDEN_HILLS = 20
    BUGARIA_END_THRONE = 42
    FAR_GRASSLANDS = 56
    GIANT_LAIR = 131


class Song(IntEnum):
    TITLE = 0
    LEVEL_UP = 7


class Enemy(IntEnum):
    """Ids into the enemy encounter table."""
    ZOMBIANT = 0
    JELLYSHROOM = 1
    SPIDER = 3
    ZASP = 15
    ACOLYTE_ARIA = 17
    VENUS_GUARDIAN = 28
    SEEDLING_KING = 43
    ULTIMAX_TANK = 46
    WASP_KING = 86
    THE_EVERLASTING_KING = 88

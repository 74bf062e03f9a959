"""
Bug Fables autosplitter.

Reads the running game's memory and turns it into start / split / end
events for a speedrun timer.
"""

__version__ = "0.3.0"

"""Chat-bot plugin toolkit: reminder timers, group management, MIDI and small utilities."""

__version__ = "0.1.0"
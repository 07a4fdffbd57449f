"""Rate limiting for batched remote calls."""

from .sequencer import CallSequencer

__all__ = ["CallSequencer"]

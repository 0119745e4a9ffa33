"""Tab to room bookkeeping for synchronized video playback."""

__version__ = "0.1.0"

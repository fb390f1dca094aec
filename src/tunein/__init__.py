"""tune-in - keep music playback in sync with an interactive coding assistant."""

__version__ = "0.1.0"

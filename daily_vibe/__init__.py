"""Daily Vibe task and calendar backend."""

__version__ = "1.0.0"

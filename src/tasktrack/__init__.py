"""tasktrack: personal task tracking with reactive filtered views."""

__version__ = "0.1.0"

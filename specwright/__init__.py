"""Specwright workflow core.

Tracks PM -> UX -> Engineer specification progress per project and detects
when an external editor has finished writing an artifact.
"""

__version__ = "1.0.0"

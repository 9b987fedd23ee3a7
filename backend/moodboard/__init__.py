"""Moodboard backend package.

Ensures imports like `from moodboard.main import app` succeed in tests & tooling.
"""

__all__ = []  # FastAPI app exposed at moodboard.main:app

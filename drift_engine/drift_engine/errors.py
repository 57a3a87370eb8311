"""Exception hierarchy for the drift engine.

The engine itself degrades parse problems to warnings; these exceptions mark
the few places where a strict helper refuses its input so that a caller can
decide how to degrade.
"""

from __future__ import annotations


class DriftEngineError(Exception):
    """Base class for all drift engine errors."""


class CreateStatementParseError(DriftEngineError):
    """Raised when a ``CREATE TABLE`` statement has no parseable column list.

    The remote description builder catches this and falls back to an empty
    set of options and defaults, recording a warning instead.
    """


class UnsupportedMetadataVersionError(DriftEngineError, ValueError):
    """Raised when a local definition declares an unknown metadata version."""

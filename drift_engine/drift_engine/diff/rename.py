"""Strategies for pairing a local column with a differently named remote one.

Exact-name matches never reach a strategy; a strategy is only consulted for
local columns whose SQL name is absent remotely.  It returns the name of the
remote column to treat as the same column, or ``None`` to treat the local
column as new.

Rename detection is heuristic.  The default strategy pairs names that share
a canonical form (``userId`` and ``user_id``), which is almost always a
naming-convention change rather than a real rename.  Callers who know about
an actual rename can supply it through :class:`ExplicitRenameStrategy`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Protocol

from drift_engine.parser.normalizer import canonical_name

logger = logging.getLogger(__name__)


class RenameStrategy(Protocol):
    """Structural interface for rename candidate selection."""

    def match(self, local_name: str, remote_names: Sequence[str]) -> str | None:
        """Return the remote column *local_name* corresponds to, or ``None``.

        *remote_names* holds only remote columns not yet claimed by another
        local column, in remote order.
        """
        ...


class CanonicalNameRenameStrategy:
    """Pair columns whose canonical names are equal.

    Only the first candidate in remote order is considered.
    """

    def match(self, local_name: str, remote_names: Sequence[str]) -> str | None:
        canon = canonical_name(local_name)
        for remote_name in remote_names:
            if canonical_name(remote_name) == canon:
                return remote_name
        return None


class ExplicitRenameStrategy:
    """Pair columns from caller-supplied ``local name -> remote name`` hints.

    Hints that name a remote column which does not exist (or is already
    claimed) are ignored and the *fallback* strategy decides instead.
    """

    def __init__(
        self,
        hints: Mapping[str, str],
        fallback: RenameStrategy | None = None,
    ) -> None:
        self._hints = dict(hints)
        self._fallback = fallback if fallback is not None else CanonicalNameRenameStrategy()

    def match(self, local_name: str, remote_names: Sequence[str]) -> str | None:
        hinted = self._hints.get(local_name)
        if hinted is not None:
            if hinted in remote_names:
                return hinted
            logger.debug("Rename hint %s -> %s does not name an unclaimed remote column", local_name, hinted)
        return self._fallback.match(local_name, remote_names)

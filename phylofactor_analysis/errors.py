"""Exception hierarchy for tree, data and contrast failures.

All errors derive from :class:`ValueError` so callers that already guard
against bad input with ``except ValueError`` keep working.
"""

from __future__ import annotations

from typing import Iterable, Tuple


def _preview(items: Iterable[object], limit: int = 5) -> str:
    items = list(items)
    text = ", ".join(map(repr, items[:limit]))
    if len(items) > limit:
        text += f", ... ({len(items) - limit} more)"
    return text


class PhyloFactorError(ValueError):
    """Base class for all phylofactor_analysis errors."""


class InvalidTreeError(PhyloFactorError):
    """Tree is cyclic, disconnected, multi-rooted or has a forbidden polytomy."""

    def __init__(self, message: str, nodes: Iterable[object] = ()):
        self.nodes = tuple(nodes)
        if self.nodes:
            message = f"{message} (nodes: {_preview(self.nodes)})"
        super().__init__(message)


class DataMismatchError(PhyloFactorError):
    """Tip set of the data matrix differs from the tip set of the tree."""

    def __init__(self, missing: Iterable[str] = (), extra: Iterable[str] = ()):
        self.missing = tuple(sorted(map(str, missing)))
        self.extra = tuple(sorted(map(str, extra)))
        parts = []
        if self.missing:
            parts.append(f"tips in tree but not in data: {_preview(self.missing)}")
        if self.extra:
            parts.append(f"tips in data but not in tree: {_preview(self.extra)}")
        super().__init__("Data matrix does not match tree tips; " + "; ".join(parts))


class DegenerateGroupError(PhyloFactorError):
    """A candidate split produced an empty or overlapping tip group."""

    def __init__(self, message: str, edge: Tuple[str, str] | None = None):
        self.edge = edge
        if edge is not None:
            message = f"{message} (edge {edge[0]!r} -> {edge[1]!r})"
        super().__init__(message)


class NonPositiveValueError(PhyloFactorError):
    """Log-ratio contrast requested on data containing zero or negative values."""

    def __init__(self, tips: Iterable[str], n_entries: int):
        self.tips = tuple(tips)
        self.n_entries = int(n_entries)
        super().__init__(
            f"Found {self.n_entries} non-positive value(s) for tips "
            f"{_preview(self.tips)}; replace zeros with a pseudocount "
            "(see compositional.replace_zeros) before log-ratio transforms."
        )


__all__ = [
    "PhyloFactorError",
    "InvalidTreeError",
    "DataMismatchError",
    "DegenerateGroupError",
    "NonPositiveValueError",
]

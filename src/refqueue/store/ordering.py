"""FIFO ordering of listed refs."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .refs import Ref


def sort_key(ref: Ref) -> tuple[int, int, str]:
    """Packed refs first, then whole-second creation time, then name.

    ``git pack-refs --all`` moves every existing ref into ``packed-refs`` and
    anything created afterwards is loose, so a packed-only ref predates every
    loose one. Packed refs all share the ``packed-refs`` mtime, which moves
    whenever the file is rewritten, so among them the name decides.

    Sub-second mtimes are not comparable across replicas (a fetch rewrites
    every ref it touches within the same moment), so ordering resolution is
    one second and the name decides ties.
    """
    return (0 if ref.packed else 1), int(ref.created_at.timestamp()), ref.name


def order_refs(refs: Iterable[Ref]) -> list[Ref]:
    """Return refs oldest first."""
    return sorted(refs, key=sort_key)


def oldest(refs: Iterable[Ref]) -> Ref | None:
    return min(refs, key=sort_key, default=None)

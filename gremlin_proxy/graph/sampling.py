# gremlin_proxy/graph/sampling.py
# SPDX-License-Identifier: Apache-2.0
"""Uniform random capping of oversized result sets."""

from __future__ import annotations

import random
from typing import Any, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")


def limit(
    collection: Sequence[T],
    max_items: int,
    rng: Optional[random.Random] = None,
) -> Tuple[List[T], bool]:
    """
    Cap ``collection`` at ``max_items`` elements.

    Returns ``(sampled, was_truncated)``. Collections at or below the limit
    come back unchanged. Larger ones are shuffled in full (on a copy) and the
    first ``max_items`` elements are returned, so every subset of that size is
    equally likely.
    """
    if len(collection) <= max_items:
        return list(collection), False
    shuffled = list(collection)
    (rng or random).shuffle(shuffled)
    return shuffled[:max_items], True


def truncation_warning(
    kind: str,
    count: int,
    max_items: int,
    vertex_id: Optional[Any] = None,
) -> str:
    """Human-readable notice for a truncated set; ``kind`` is plural ("vertices")."""
    scope = "Query" if vertex_id is None else f"Vertex {vertex_id}"
    return (
        f"{scope}: Number of {kind} ({count}) higher than nodeLimit ({max_items}). "
        f"Returning a random sample of {max_items} elements."
    )


__all__ = ["limit", "truncation_warning"]

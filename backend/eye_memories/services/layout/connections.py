"""Nearest-neighbour edges for the web layout.

All-pairs distances make this O(N^2) per call, which is fine for gallery
sizes in the tens to low hundreds.
"""

from __future__ import annotations

import math
from typing import Any, List, Mapping, Optional, Sequence, Set, Tuple

Edge = Tuple[int, int]

MIN_NEIGHBORS = 2
MAX_NEIGHBORS = 3


def _distance(a: Sequence[float], b: Sequence[float]) -> float:
    return math.sqrt((a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2 + (a[2] - b[2]) ** 2)


def web_connections(
    positioned: Sequence[Mapping[str, Any]],
    neighbors: int = MIN_NEIGHBORS,
    max_distance: Optional[float] = None,
    repair_isolated: bool = True,
) -> List[Edge]:
    """Link every node to its nearest neighbours.

    Returns sorted ``(i, j)`` index pairs with ``i < j``, so there are no
    self loops and no edge appears twice in either direction. ``neighbors``
    is clamped to 2..3. With ``max_distance`` set, longer edges are dropped;
    ``repair_isolated`` then links any node left without an edge to its
    single nearest neighbour. The graph is not guaranteed to be connected.
    """
    count = len(positioned)
    if count < 2:
        return []

    k = min(max(int(neighbors), MIN_NEIGHBORS), MAX_NEIGHBORS)
    points = [item["position"] for item in positioned]

    ranked: List[List[Tuple[float, int]]] = []
    for i in range(count):
        distances = [(_distance(points[i], points[j]), j) for j in range(count) if j != i]
        distances.sort()
        ranked.append(distances)

    edges: Set[Edge] = set()
    for i, distances in enumerate(ranked):
        for dist, j in distances[:k]:
            if max_distance is not None and dist > max_distance:
                break
            edges.add((min(i, j), max(i, j)))

    if repair_isolated:
        linked = {node for edge in edges for node in edge}
        for i in range(count):
            if i not in linked:
                _, j = ranked[i][0]
                edges.add((min(i, j), max(i, j)))
                linked.update((i, j))

    return sorted(edges)

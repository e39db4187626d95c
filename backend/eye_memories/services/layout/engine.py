from __future__ import annotations

import random
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from eye_memories.services.layout.layouts import (
    Positioned,
    grid_layout,
    sphere_layout,
    spiral_layout,
    wave_layout,
    web_layout,
)

LayoutFunction = Callable[..., List[Positioned]]

LAYOUTS: Dict[str, LayoutFunction] = {
    "spiral": spiral_layout,
    "grid": grid_layout,
    "sphere": sphere_layout,
    "wave": wave_layout,
    "web": web_layout,
}
LAYOUT_MODES = tuple(LAYOUTS)
DEFAULT_MODE = "web"
RANDOMIZED_MODES = frozenset({"grid", "sphere", "web"})


def resolve_mode(mode: Optional[str]) -> str:
    """Normalize a mode name; anything unrecognized becomes the web layout."""
    normalized = (mode or "").strip().lower()
    return normalized if normalized in LAYOUTS else DEFAULT_MODE


def layout_images(
    images: Sequence[Mapping[str, Any]],
    mode: Optional[str] = DEFAULT_MODE,
    rng: Optional[random.Random] = None,
    **config: Any,
) -> List[Positioned]:
    """Position ``images`` with the layout named by ``mode``.

    ``config`` is forwarded to the layout function as keyword overrides.
    Without ``rng`` the randomized layouts differ on every call.
    """
    if not images:
        return []
    layout = LAYOUTS[resolve_mode(mode)]
    return layout(images, rng if rng is not None else random.Random(), **config)


def transition_layout(
    from_layout: Sequence[Mapping[str, Any]],
    to_layout: Sequence[Mapping[str, Any]],
    progress: float = 0.0,
) -> List[Positioned]:
    """Interpolate positions linearly from one layout towards another.

    Items are matched by index. Items without a counterpart in ``to_layout``
    keep their starting position.
    """
    progress = min(max(progress, 0.0), 1.0)
    blended = []
    for i, item in enumerate(from_layout):
        start = item["position"]
        end = to_layout[i]["position"] if i < len(to_layout) else start
        moved = dict(item)
        moved["position"] = tuple(float(a + (b - a) * progress) for a, b in zip(start, end))
        blended.append(moved)
    return blended

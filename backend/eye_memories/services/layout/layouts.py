"""3D placement formulas for gallery cards.

Each layout maps an ordered sequence of image mappings to new dicts that
carry a ``position`` and a ``rotation`` (both ``(x, y, z)`` float tuples).
Inputs are never mutated and the output keeps the input order. Layouts
that use randomness draw from the ``rng`` argument so callers can pass a
seeded ``random.Random`` for reproducible output.
"""

from __future__ import annotations

import math
import random
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

Vec3 = Tuple[float, float, float]
Positioned = Dict[str, Any]

TWO_PI = math.pi * 2

# Inner boundary of the web layout's shell, as a fraction of its radius
WEB_SHELL_INNER = 0.4


def _place(image: Mapping[str, Any], position: Vec3, rotation: Vec3) -> Positioned:
    placed = dict(image)
    placed["position"] = (float(position[0]), float(position[1]), float(position[2]))
    placed["rotation"] = (float(rotation[0]), float(rotation[1]), float(rotation[2]))
    return placed


def _rng(rng: Optional[random.Random]) -> random.Random:
    return rng if rng is not None else random.Random()


def spiral_layout(
    images: Sequence[Mapping[str, Any]],
    rng: Optional[random.Random] = None,
    *,
    radius: float = 15.0,
    height: float = 20.0,
    rotations: float = 3.0,
    tightness: float = 0.8,
) -> List[Positioned]:
    """Helix whose radius shrinks linearly towards the top."""
    count = len(images)
    placed = []
    for i, image in enumerate(images):
        t = i / count
        angle = t * TWO_PI * rotations
        spiral_radius = radius * (1 - t * tightness)
        placed.append(
            _place(
                image,
                (math.cos(angle) * spiral_radius, (t - 0.5) * height, math.sin(angle) * spiral_radius),
                (0.0, -angle + math.pi / 2, 0.0),
            )
        )
    return placed


def grid_layout(
    images: Sequence[Mapping[str, Any]],
    rng: Optional[random.Random] = None,
    *,
    cols: int = 5,
    spacing: float = 4.0,
    depth_variation: float = 3.0,
    row_offset: float = 0.5,
) -> List[Positioned]:
    """Rows of ``cols`` cards, odd rows staggered, with random depth and tilt jitter."""
    rng = _rng(rng)
    cols = max(1, int(cols))
    half_rows = (len(images) // cols) / 2
    placed = []
    for i, image in enumerate(images):
        row, col = divmod(i, cols)
        stagger = row_offset * spacing if row % 2 == 1 else 0.0
        position = (
            (col - cols / 2) * spacing + stagger,
            -(row - half_rows) * spacing,
            (rng.random() - 0.5) * depth_variation,
        )
        rotation = ((rng.random() - 0.5) * 0.1, (rng.random() - 0.5) * 0.1, 0.0)
        placed.append(_place(image, position, rotation))
    return placed


def sphere_layout(
    images: Sequence[Mapping[str, Any]],
    rng: Optional[random.Random] = None,
    *,
    radius: float = 20.0,
    inner_radius: float = 0.7,
    randomness: float = 0.2,
) -> List[Positioned]:
    """Fibonacci-sphere distribution with jittered radius and angles.

    Every card ends up between ``radius * inner_radius`` and ``radius``
    from the origin and is turned to face outwards around the vertical axis.
    """
    rng = _rng(rng)
    count = len(images)
    placed = []
    for i, image in enumerate(images):
        phi = math.acos(-1 + (2 * i) / count)
        theta = math.sqrt(count * math.pi) * phi

        r = radius * (inner_radius + (1 - inner_radius) * rng.random())
        jittered_phi = phi + (rng.random() - 0.5) * randomness
        jittered_theta = theta + (rng.random() - 0.5) * randomness

        x = r * math.cos(jittered_theta) * math.sin(jittered_phi)
        y = r * math.cos(jittered_phi)
        z = r * math.sin(jittered_theta) * math.sin(jittered_phi)
        placed.append(_place(image, (x, y, z), (0.0, math.atan2(x, z), 0.0)))
    return placed


WAVE_TYPES = ("sine", "cosine", "both")


def wave_layout(
    images: Sequence[Mapping[str, Any]],
    rng: Optional[random.Random] = None,
    *,
    cols: int = 5,
    spacing: float = 4.0,
    amplitude: float = 3.0,
    frequency: float = 0.5,
    wave_type: str = "sine",
) -> List[Positioned]:
    """Flat grid displaced vertically by a sine of x, a cosine of z, or both."""
    cols = max(1, int(cols))
    half_rows = (len(images) // cols) / 2
    placed = []
    for i, image in enumerate(images):
        row, col = divmod(i, cols)
        x = (col - cols / 2) * spacing
        z = (row - half_rows) * spacing

        if wave_type == "sine":
            y = math.sin(x * frequency) * amplitude
        elif wave_type == "cosine":
            y = math.cos(z * frequency) * amplitude
        else:
            y = math.sin(x * frequency) * amplitude + math.cos(z * frequency) * amplitude

        rotation = (math.sin(x * frequency) * 0.1, 0.0, math.cos(z * frequency) * 0.1)
        placed.append(_place(image, (x, y, z), rotation))
    return placed


def web_layout(
    images: Sequence[Mapping[str, Any]],
    rng: Optional[random.Random] = None,
    *,
    radius: float = 18.0,
) -> List[Positioned]:
    """Constellation of random points inside a thick spherical shell.

    The cube root spreads points evenly through the shell volume. Rotation
    is always zero because the renderer billboards these cards.
    """
    rng = _rng(rng)
    placed = []
    for image in images:
        theta = rng.random() * TWO_PI
        phi = math.acos(rng.random() * 2 - 1)
        r = radius * (WEB_SHELL_INNER + (1 - WEB_SHELL_INNER) * rng.random() ** (1 / 3))

        x = r * math.sin(phi) * math.cos(theta)
        y = r * math.sin(phi) * math.sin(theta)
        z = r * math.cos(phi)
        placed.append(_place(image, (x, y, z), (0.0, 0.0, 0.0)))
    return placed

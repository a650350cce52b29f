"""Procedural samplers for the archetypal point-cloud shapes.

Every sampler has the signature ``sample_<kind>(count, rng) -> np.ndarray`` and
returns a ``(count, 3)`` float array. They are collected in ``shape_samplers``,
keyed by ``ShapeKind``, and ``generate`` is the entry point that resolves the
kind, handles empty requests and dispatches.

Filled volumes (spheres, the Saturn body, the Buddha torso and head) draw their
radius as ``R * cbrt(u)`` so that points are uniformly dense by volume rather
than by radius.
"""

import math
from enum import Enum
from typing import Callable, Dict, Union

import numpy as np

from handmorph.util import ensure_rng

# -------------------------------------------------------------------------------
# Shape kinds
# -------------------------------------------------------------------------------


class ShapeKind(str, Enum):
    HEART = 'heart'
    FLOWER = 'flower'
    SATURN = 'saturn'
    BUDDHA = 'buddha'
    FIREWORK = 'firework'


class InvalidShapeKind(ValueError):
    """Raised when a shape kind can't be resolved to a ShapeKind."""

    pass


def resolve_shape_kind(kind: Union[str, ShapeKind]) -> ShapeKind:
    """
    Resolve a ShapeKind from itself, its value or its name (case-insensitive).

    >>> resolve_shape_kind('Saturn')
    <ShapeKind.SATURN: 'saturn'>
    >>> resolve_shape_kind(ShapeKind.HEART)
    <ShapeKind.HEART: 'heart'>
    """
    if isinstance(kind, ShapeKind):
        return kind
    if isinstance(kind, str):
        key = kind.strip().lower()
        for member in ShapeKind:
            if key == member.value:
                return member
    raise InvalidShapeKind(
        f"Unknown shape kind: {kind!r}. "
        f"Expected one of {[k.value for k in ShapeKind]}"
    )


# -------------------------------------------------------------------------------
# Constants
# -------------------------------------------------------------------------------

HEART_SCALE = 0.15
HEART_THICKNESS = 2.0

FLOWER_PETALS = 4
FLOWER_AMPLITUDE = 3.0
FLOWER_DEPTH = 1.5

SATURN_RING_PROBABILITY = 0.6
SATURN_RING_RADII = (3.0, 5.0)
SATURN_RING_THICKNESS = 0.2
SATURN_BODY_RADIUS = 1.8
SATURN_TILT = math.pi / 6  # about the z axis

BUDDHA_BASE_PROBABILITY = 0.4
BUDDHA_TORSO_PROBABILITY = 0.4  # head takes the rest
BUDDHA_BASE_RADIUS = 2.0
BUDDHA_BASE_DEPTH_SQUASH = 0.8
BUDDHA_BASE_Y = (-1.5, -1.0)
BUDDHA_TORSO_RADIUS = 1.2
BUDDHA_TORSO_Y = -0.2
BUDDHA_HEAD_RADIUS = 0.7
BUDDHA_HEAD_Y = 1.3

FIREWORK_RADIUS = 4.0


# -------------------------------------------------------------------------------
# Geometry helpers
# -------------------------------------------------------------------------------


def filled_sphere(count: int, radius: float, rng: np.random.Generator) -> np.ndarray:
    """Points uniformly distributed (by volume) inside a sphere at the origin."""
    r = radius * np.cbrt(rng.random(count))
    theta = rng.random(count) * 2 * np.pi
    phi = np.arccos(2 * rng.random(count) - 1)
    sin_phi = np.sin(phi)
    return np.column_stack(
        [r * sin_phi * np.cos(theta), r * sin_phi * np.sin(theta), r * np.cos(phi)]
    )


def rotation_z(angle: float) -> np.ndarray:
    """Rotation matrix about the z axis, for row-vector points (``points @ R.T``)."""
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


# -------------------------------------------------------------------------------
# Samplers
# -------------------------------------------------------------------------------


def sample_heart(count: int, rng: np.random.Generator) -> np.ndarray:
    """
    Cardioid heart in the xy plane, filled towards its center, with thickness in z.

    Each point picks a curve point ``(16 sin^3 t, 13 cos t - 5 cos 2t - 2 cos 3t - cos 4t)``
    and scales it by ``HEART_SCALE * cbrt(u)``.
    """
    t = rng.random(count) * 2 * np.pi
    hx = 16 * np.sin(t) ** 3
    hy = 13 * np.cos(t) - 5 * np.cos(2 * t) - 2 * np.cos(3 * t) - np.cos(4 * t)
    r = np.cbrt(rng.random(count)) * HEART_SCALE
    z = (rng.random(count) - 0.5) * HEART_THICKNESS
    return np.column_stack([hx * r, hy * r, z])


def sample_flower(count: int, rng: np.random.Generator) -> np.ndarray:
    """
    Four-petal rose curve ``r = A cos(k t)``, filled by a uniform factor per point.

    The z offset is damped by ``exp(-|r|)`` so petal tips are flatter than the center.
    """
    t = rng.random(count) * 2 * np.pi
    radius = FLOWER_AMPLITUDE * np.cos(FLOWER_PETALS * t) * rng.random(count)
    z = (rng.random(count) - 0.5) * FLOWER_DEPTH * np.exp(-np.abs(radius))
    return np.column_stack([radius * np.cos(t), radius * np.sin(t), z])


def _saturn_untilted(count: int, rng: np.random.Generator):
    """Saturn before the axial tilt, plus the mask of ring points."""
    is_ring = rng.random(count) < SATURN_RING_PROBABILITY
    n_ring = int(is_ring.sum())
    points = np.empty((count, 3))

    t = rng.random(n_ring) * 2 * np.pi
    lo, hi = SATURN_RING_RADII
    ring_r = lo + rng.random(n_ring) * (hi - lo)
    points[is_ring, 0] = ring_r * np.cos(t)
    points[is_ring, 1] = (rng.random(n_ring) - 0.5) * SATURN_RING_THICKNESS
    points[is_ring, 2] = ring_r * np.sin(t)

    points[~is_ring] = filled_sphere(count - n_ring, SATURN_BODY_RADIUS, rng)
    return points, is_ring


def sample_saturn(count: int, rng: np.random.Generator) -> np.ndarray:
    """Ring in the xz plane around a filled planet body, tilted by ``SATURN_TILT``."""
    points, _ = _saturn_untilted(count, rng)
    return points @ rotation_z(SATURN_TILT).T


def sample_buddha(count: int, rng: np.random.Generator) -> np.ndarray:
    """Seated figure as a flat disc base, a torso sphere and a head sphere."""
    part = rng.random(count)
    is_base = part < BUDDHA_BASE_PROBABILITY
    is_torso = ~is_base & (part < BUDDHA_BASE_PROBABILITY + BUDDHA_TORSO_PROBABILITY)
    is_head = ~(is_base | is_torso)
    points = np.empty((count, 3))

    n_base = int(is_base.sum())
    lr = BUDDHA_BASE_RADIUS * np.sqrt(rng.random(n_base))
    la = rng.random(n_base) * 2 * np.pi
    y_lo, y_hi = BUDDHA_BASE_Y
    points[is_base, 0] = lr * np.cos(la)
    points[is_base, 1] = y_lo + rng.random(n_base) * (y_hi - y_lo)
    points[is_base, 2] = lr * np.sin(la) * BUDDHA_BASE_DEPTH_SQUASH

    torso = filled_sphere(int(is_torso.sum()), BUDDHA_TORSO_RADIUS, rng)
    torso[:, 1] += BUDDHA_TORSO_Y
    points[is_torso] = torso

    head = filled_sphere(int(is_head.sum()), BUDDHA_HEAD_RADIUS, rng)
    head[:, 1] += BUDDHA_HEAD_Y
    points[is_head] = head

    return points


def sample_firework(count: int, rng: np.random.Generator) -> np.ndarray:
    """Exploding sphere: uniform by volume inside ``FIREWORK_RADIUS``."""
    return filled_sphere(count, FIREWORK_RADIUS, rng)


Sampler = Callable[[int, np.random.Generator], np.ndarray]

shape_samplers: Dict[ShapeKind, Sampler] = {
    ShapeKind.HEART: sample_heart,
    ShapeKind.FLOWER: sample_flower,
    ShapeKind.SATURN: sample_saturn,
    ShapeKind.BUDDHA: sample_buddha,
    ShapeKind.FIREWORK: sample_firework,
}


def _max_heart_radius():
    t = np.linspace(0, 2 * np.pi, 2001)
    hx = 16 * np.sin(t) ** 3
    hy = 13 * np.cos(t) - 5 * np.cos(2 * t) - 2 * np.cos(3 * t) - np.cos(4 * t)
    planar = float(np.max(np.hypot(hx, hy))) * HEART_SCALE
    return math.hypot(planar * 1.001, HEART_THICKNESS / 2)


shape_bounds_by_kind = {
    ShapeKind.HEART: _max_heart_radius(),
    ShapeKind.FLOWER: math.hypot(FLOWER_AMPLITUDE, FLOWER_DEPTH / 2),
    ShapeKind.SATURN: math.hypot(SATURN_RING_RADII[1], SATURN_RING_THICKNESS / 2),
    ShapeKind.BUDDHA: max(
        math.hypot(BUDDHA_BASE_RADIUS, BUDDHA_BASE_Y[0]),
        abs(BUDDHA_TORSO_Y) + BUDDHA_TORSO_RADIUS,
        BUDDHA_HEAD_Y + BUDDHA_HEAD_RADIUS,
    ),
    ShapeKind.FIREWORK: FIREWORK_RADIUS,
}


def shape_bounds(kind: Union[str, ShapeKind]) -> float:
    """
    Radius of an origin-centered sphere that contains every sample of ``kind``.

    >>> shape_bounds('firework')
    4.0
    """
    return shape_bounds_by_kind[resolve_shape_kind(kind)]


# -------------------------------------------------------------------------------
# Entry point
# -------------------------------------------------------------------------------


def generate(kind: Union[str, ShapeKind], count: int, rng=None) -> np.ndarray:
    """
    Sample ``count`` points approximating the shape ``kind``.

    Args:
        kind: A ShapeKind, or its value/name as a string
        count: Number of points. Zero or negative gives an empty ``(0, 3)`` array
        rng: A ``numpy.random.Generator``, an integer seed, or None

    Returns:
        np.ndarray: A ``(count, 3)`` float array

    Raises:
        InvalidShapeKind: If ``kind`` isn't one of the known shapes

    >>> generate('heart', 5, rng=0).shape
    (5, 3)
    >>> generate(ShapeKind.FLOWER, 0).shape
    (0, 3)
    """
    sampler = shape_samplers[resolve_shape_kind(kind)]
    count = int(count)
    if count <= 0:
        return np.empty((0, 3))
    return sampler(count, ensure_rng(rng))

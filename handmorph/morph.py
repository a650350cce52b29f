"""The morph engine: advances the live point cloud toward the current target shape.

The engine owns two ``(n, 3)`` arrays: the positions that get rendered, and the
target they are pulled toward. Each tick the interaction value sets how much the
target is expanded, how much time-varying noise is added to it, and how fast the
whole cloud spins. A shape change samples a new target and swaps it in with one
assignment; the positions just keep morphing from wherever they are.
"""

import math
from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np

from handmorph.shapes import ShapeKind, generate, resolve_shape_kind
from handmorph.smoothing import InteractionSignal
from handmorph.util import clamp01, ensure_rng

DFLT_PARTICLE_COUNT = 4000
DFLT_SHAPE = ShapeKind.SATURN
DFLT_MORPH_RATE = 3.0  # fraction of the remaining gap closed per second
DFLT_SCATTER = 10.0  # side of the cube the initial positions are scattered in
DFLT_CHAOS_THRESHOLD = 0.01
DFLT_CHAOS_FREQUENCIES = (2.0, 3.0, 4.0)
SECONDARY_ROTATION_RATIO = 0.2


@dataclass(frozen=True)
class MorphParameters:
    """Per-tick knobs, all increasing with the interaction value."""

    expansion_factor: float = 1.0
    chaos_amplitude: float = 0.0
    rotation_speed: float = 0.1

    @classmethod
    def from_interaction(cls, interaction: float) -> 'MorphParameters':
        """
        >>> MorphParameters.from_interaction(1.0)
        MorphParameters(expansion_factor=3.0, chaos_amplitude=0.5, rotation_speed=0.6)
        >>> MorphParameters.from_interaction(float('nan'))
        MorphParameters(expansion_factor=1.0, chaos_amplitude=0.0, rotation_speed=0.1)
        """
        i = clamp01(interaction)
        return cls(
            expansion_factor=1 + i * 2.0,
            chaos_amplitude=i * 0.5,
            rotation_speed=0.1 + i * 0.5,
        )


def _read_only(a: np.ndarray) -> np.ndarray:
    view = a.view()
    view.flags.writeable = False
    return view


def euler_xyz_matrix(angles) -> np.ndarray:
    """Rotation matrix for intrinsic x, then y, then z Euler angles (``Rx @ Ry @ Rz``)."""
    ax, ay, az = angles
    cx, sx = math.cos(ax), math.sin(ax)
    cy, sy = math.cos(ay), math.sin(ay)
    cz, sz = math.cos(az), math.sin(az)
    rx = np.array([[1, 0, 0], [0, cx, -sx], [0, sx, cx]])
    ry = np.array([[cy, 0, sy], [0, 1, 0], [-sy, 0, cy]])
    rz = np.array([[cz, -sz, 0], [sz, cz, 0], [0, 0, 1]])
    return rx @ ry @ rz


class MorphEngine:
    """
    Owns the live point cloud and morphs it toward a target shape, tick by tick.

    Usage:
        engine = MorphEngine('heart', particle_count=4000, rng=0)

        while running:
            engine.tick(smoother.update(sample).value, dt)
            renderer.draw(engine.positions, engine.rotation_matrix())

    Args:
        shape: Initial ShapeKind (or its name)
        particle_count: Number of points, fixed for the engine's lifetime
        rng: ``numpy.random.Generator``, seed or None; used for the initial
            scatter and for every target sampling
        morph_rate: Fraction of the remaining gap closed per second
        scatter: Side of the cube, centered on the origin, of the initial scatter
        chaos_threshold: Chaos amplitudes at or below this add no perturbation
        chaos_frequencies: Angular frequencies of the x, y and z perturbations
    """

    def __init__(
        self,
        shape: Union[str, ShapeKind] = DFLT_SHAPE,
        particle_count: int = DFLT_PARTICLE_COUNT,
        *,
        rng=None,
        morph_rate: float = DFLT_MORPH_RATE,
        scatter: float = DFLT_SCATTER,
        chaos_threshold: float = DFLT_CHAOS_THRESHOLD,
        chaos_frequencies: Tuple[float, float, float] = DFLT_CHAOS_FREQUENCIES,
    ):
        self.particle_count = max(0, int(particle_count))
        self.rng = ensure_rng(rng)
        self.morph_rate = morph_rate
        self.chaos_threshold = chaos_threshold
        self.chaos_frequencies = np.asarray(chaos_frequencies, dtype=float)

        self._positions = (self.rng.random((self.particle_count, 3)) - 0.5) * scatter
        self._phases = np.arange(self.particle_count, dtype=float)[:, None]
        self._rotation = np.zeros(3)
        self.elapsed = 0.0
        self.shape = resolve_shape_kind(shape)
        self._target = generate(self.shape, self.particle_count, self.rng)

    # ---------------------------------------------------------------------------
    # Read-only state

    @property
    def positions(self) -> np.ndarray:
        """The live point cloud, as a read-only ``(n, 3)`` view."""
        return _read_only(self._positions)

    @property
    def target(self) -> np.ndarray:
        return _read_only(self._target)

    @property
    def rotation(self) -> Tuple[float, float, float]:
        """Accumulated Euler angles (x, y, z) of the whole cloud, in radians."""
        return tuple(float(a) for a in self._rotation)

    def rotation_matrix(self) -> np.ndarray:
        return euler_xyz_matrix(self._rotation)

    def buffer(self) -> np.ndarray:
        """A flat float32 copy of the positions, the layout GPU point buffers expect."""
        return self._positions.astype(np.float32).ravel()

    # ---------------------------------------------------------------------------
    # Target management

    def set_shape(self, shape: Union[str, ShapeKind]):
        """Sample a new target for ``shape`` and swap it in. Positions are not reset."""
        kind = resolve_shape_kind(shape)
        self.set_target(generate(kind, self.particle_count, self.rng))
        self.shape = kind

    def set_target(self, points):
        """Swap in ``points`` as the target. Must have one row per particle."""
        points = np.asarray(points, dtype=float)
        if points.shape != (self.particle_count, 3):
            raise ValueError(
                f"Target must have shape {(self.particle_count, 3)}, got {points.shape}"
            )
        self._target = points

    # ---------------------------------------------------------------------------
    # Tick

    def perturbation(self, elapsed: float, amplitude: float) -> np.ndarray:
        """Per-point offsets ``amplitude * (sin(2t + i), cos(3t + i), sin(4t + i))``."""
        fx, fy, fz = self.chaos_frequencies
        p = self._phases
        return amplitude * np.hstack(
            [
                np.sin(elapsed * fx + p),
                np.cos(elapsed * fy + p),
                np.sin(elapsed * fz + p),
            ]
        )

    def tick(
        self,
        interaction: Union[float, InteractionSignal],
        dt: float,
        elapsed: Optional[float] = None,
    ) -> MorphParameters:
        """
        Advance the point cloud and the rotation by one frame.

        Args:
            interaction: Interaction value in [0, 1], or an InteractionSignal.
                Out of range and non-finite values are clamped.
            dt: Seconds since the previous tick. Zero, negative or non-finite
                values leave everything unchanged.
            elapsed: Clock driving the perturbation. Defaults to the engine's own
                accumulated time.

        Returns:
            MorphParameters: The parameters applied on this tick
        """
        if isinstance(interaction, InteractionSignal):
            interaction = interaction.value
        params = MorphParameters.from_interaction(interaction)
        if not math.isfinite(dt) or dt <= 0:
            return params

        self.elapsed += dt
        if elapsed is None:
            elapsed = self.elapsed

        target = self._target
        goal = target * params.expansion_factor
        if params.chaos_amplitude > self.chaos_threshold:
            goal = goal + self.perturbation(elapsed, params.chaos_amplitude)

        blend = min(1.0, self.morph_rate * dt)
        self._positions += (goal - self._positions) * blend

        self._rotation[1] += params.rotation_speed * dt
        self._rotation[2] += SECONDARY_ROTATION_RATIO * params.rotation_speed * dt
        return params

"""Signal conditioning: from raw, intermittent gesture samples to a stable interaction value.

The detector publishes raw samples at its own pace: a normalized scalar, or
``NO_DETECTION`` when no hand is visible. The render loop asks the
``SignalSmoother`` for one ``InteractionSignal`` per tick. The smoother always has a
target to move toward (the last valid sample, or a neutral value, depending on the
``DetectionLostPolicy``), so a slow or absent detector never stalls the animation.
"""

import math
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from handmorph.util import clamp01

NO_DETECTION = None

Sample = Optional[float]

DFLT_PINCH_WINDOW = (0.02, 0.2)
DFLT_SMOOTHING_RATE = 0.1
DFLT_NEUTRAL = 0.5
DFLT_DEADBAND = 0.001
DFLT_REFERENCE_FPS = 60.0


# -------------------------------------------------------------------------------
# Normalization
# -------------------------------------------------------------------------------


class RangeMapper:
    """
    A callable class that maps values from one range to another, clamping at the ends.
    Precomputes scaling factors for better performance.

    >>> mapper = RangeMapper((0, 1), (100, 200))
    >>> mapper(0.5)
    150.0
    >>> mapper(-0.1)  # Below range
    100.0
    >>> mapper(1.5)   # Above range
    200.0
    """

    def __init__(
        self,
        value_range: Tuple[float, float],
        target_range: Tuple[float, float] = (0.0, 1.0),
    ):
        """
        Initialize the range mapper with source and target ranges.

        Args:
            value_range: The range of the input value (min, max)
            target_range: The range to map to (min, max)
        """
        self.value_min, self.value_max = value_range
        self.target_min, self.target_max = target_range
        if self.value_max <= self.value_min:
            raise ValueError(f"Empty value range: {value_range}")

        self._value_span = self.value_max - self.value_min
        self._target_span = self.target_max - self.target_min
        self._scale_factor = self._target_span / self._value_span

    def __call__(self, value: float) -> float:
        """
        Map a value from the source range to the target range.

        Args:
            value: The value to map

        Returns:
            Mapped value in the target range
        """
        if value <= self.value_min:
            output = self.target_min
        elif value >= self.value_max:
            output = self.target_max
        else:
            output = self.target_min + (value - self.value_min) * self._scale_factor

        return float(output)


def normalize_pinch(distance: float, near: float = 0.02, far: float = 0.2) -> float:
    """
    Map a thumb/index distance onto [0, 1]: ``near`` and closer is 0, ``far`` and
    beyond is 1.

    >>> round(normalize_pinch(0.11), 6)
    0.5
    >>> normalize_pinch(0.5)
    1.0
    >>> normalize_pinch(-1)
    0.0
    """
    return clamp01(RangeMapper((near, far))(distance))


# -------------------------------------------------------------------------------
# Smoothed signal
# -------------------------------------------------------------------------------


class DetectionLostPolicy(str, Enum):
    """What the smoother moves toward while there's no detection."""

    FREEZE_LAST = 'freeze_last'
    DECAY_TO_NEUTRAL = 'decay_to_neutral'


lost_policies = {p.value: p for p in DetectionLostPolicy}


@dataclass(frozen=True)
class InteractionSignal:
    value: float = 0.0
    detected: bool = False


def _is_valid_sample(sample) -> bool:
    return sample is not NO_DETECTION and math.isfinite(sample)


class SignalSmoother:
    """
    Exponential approach of a [0, 1] value toward the latest valid target.

    Each update closes a fraction ``alpha`` of the remaining gap. With
    ``time_scaled=False`` (the default) ``alpha`` is ``rate`` on every tick, whatever
    the frame rate. With ``time_scaled=True``, ``alpha = 1 - (1 - rate) ** (dt * reference_fps)``
    so the value moves the same amount per second at any frame rate, and exactly
    ``rate`` per tick at ``reference_fps``.

    >>> s = SignalSmoother(rate=0.5)
    >>> s.update(1.0).value
    0.5
    >>> s.update(1.0).value
    0.75
    >>> s.update(None)
    InteractionSignal(value=0.875, detected=False)
    """

    def __init__(
        self,
        rate: float = DFLT_SMOOTHING_RATE,
        *,
        lost_policy: Union[str, DetectionLostPolicy] = DetectionLostPolicy.FREEZE_LAST,
        neutral: float = DFLT_NEUTRAL,
        initial: float = 0.0,
        deadband: float = DFLT_DEADBAND,
        time_scaled: bool = False,
        reference_fps: float = DFLT_REFERENCE_FPS,
    ):
        if not 0.0 < rate <= 1.0:
            raise ValueError(f"rate must be in (0, 1], was {rate}")
        if not 0.0 <= neutral <= 1.0:
            raise ValueError(f"neutral must be in [0, 1], was {neutral}")
        if reference_fps <= 0:
            raise ValueError(f"reference_fps must be positive, was {reference_fps}")
        self.rate = rate
        self.lost_policy = DetectionLostPolicy(lost_policy)
        self.neutral = neutral
        self.deadband = deadband
        self.time_scaled = time_scaled
        self.reference_fps = reference_fps

        self.value = clamp01(initial)
        self.target = self.value
        self.detected = False

    def alpha(self, dt: Optional[float] = None) -> float:
        """The fraction of the remaining gap closed by one update."""
        if not self.time_scaled or dt is None:
            return self.rate
        if not math.isfinite(dt) or dt <= 0:
            return 0.0
        return 1.0 - (1.0 - self.rate) ** (dt * self.reference_fps)

    def _retarget(self, sample: Sample):
        if _is_valid_sample(sample):
            self.target = clamp01(sample)
            self.detected = True
        else:
            self.detected = False
            if self.lost_policy is DetectionLostPolicy.DECAY_TO_NEUTRAL:
                self.target = self.neutral

    def update(self, sample: Sample, dt: Optional[float] = None) -> InteractionSignal:
        """
        Feed one raw sample (or ``NO_DETECTION``) and advance the smoothed value.

        Args:
            sample: A normalized sample (clamped into [0, 1]), or ``NO_DETECTION``.
                NaN and infinite samples count as ``NO_DETECTION``.
            dt: Seconds since the previous update. Only used when ``time_scaled``.

        Returns:
            InteractionSignal: The new smoothed value and the detection state
        """
        self._retarget(sample)
        diff = self.target - self.value
        if abs(diff) > self.deadband:
            self.value = clamp01(self.value + diff * self.alpha(dt))
        return self.signal

    def tick(self, mailbox: 'SampleMailbox', dt: Optional[float] = None) -> InteractionSignal:
        """Update from the latest sample of ``mailbox``, never waiting on it."""
        return self.update(mailbox.latest(), dt)

    @property
    def signal(self) -> InteractionSignal:
        return InteractionSignal(self.value, self.detected)


# -------------------------------------------------------------------------------
# Producer/consumer handoff
# -------------------------------------------------------------------------------


class SampleMailbox:
    """
    Holds the most recent raw sample posted by a detector thread.

    Posting overwrites: the consumer only ever sees the newest sample. If
    ``stale_after`` is given, a sample older than that many seconds reads as
    ``NO_DETECTION``.

    >>> box = SampleMailbox()
    >>> box.latest() is NO_DETECTION
    True
    >>> box.post(0.3)
    >>> box.latest()
    0.3
    """

    def __init__(self, stale_after: Optional[float] = None, *, clock=time.monotonic):
        self.stale_after = stale_after
        self.clock = clock
        self._lock = threading.Lock()
        self._sample: Sample = NO_DETECTION
        self._posted_at: Optional[float] = None
        self.n_posted = 0

    def post(self, sample: Sample):
        with self._lock:
            self._sample = sample
            self._posted_at = self.clock()
            self.n_posted += 1

    def latest(self) -> Sample:
        with self._lock:
            sample, posted_at = self._sample, self._posted_at
        if posted_at is None:
            return NO_DETECTION
        if self.stale_after is not None and self.clock() - posted_at > self.stale_after:
            return NO_DETECTION
        return sample

"""Tests for the interaction signal conditioning.

These tests verify that:
1. Raw pinch distances are normalized and clamped, never rejected
2. Smoothing converges monotonically toward the target, without overshoot
3. Both detection-lost policies behave as configured
4. The mailbox hands the latest sample over and ages stale ones out
"""

import math

import numpy as np
import pytest

from handmorph.smoothing import (
    NO_DETECTION,
    DetectionLostPolicy,
    InteractionSignal,
    RangeMapper,
    SampleMailbox,
    SignalSmoother,
    normalize_pinch,
)


class FakeClock:
    def __init__(self, t=0.0):
        self.t = t

    def __call__(self):
        return self.t


class TestNormalization:
    """Pinch distance to [0, 1]."""

    def test_window_ends(self):
        assert normalize_pinch(0.02) == 0.0
        assert normalize_pinch(0.2) == 1.0

    def test_linear_inside_window(self):
        assert normalize_pinch(0.11) == pytest.approx(0.5)
        assert normalize_pinch(0.065) == pytest.approx(0.25)

    @pytest.mark.parametrize("distance,expected", [(-1.0, 0.0), (0.0, 0.0), (0.5, 1.0), (1e9, 1.0)])
    def test_out_of_range_is_clamped(self, distance, expected):
        assert normalize_pinch(distance) == expected

    def test_nan_maps_to_zero(self):
        assert normalize_pinch(float("nan")) == 0.0

    def test_custom_window(self):
        assert normalize_pinch(0.175, near=0.05, far=0.3) == pytest.approx(0.5)

    def test_range_mapper_rejects_empty_range(self):
        with pytest.raises(ValueError):
            RangeMapper((0.2, 0.2))

    def test_range_mapper_only_takes_the_two_ranges(self):
        mapper = RangeMapper((0.05, 0.3), (0.0, 1.0))
        assert mapper(0.175) == pytest.approx(0.5)
        assert isinstance(mapper(1), float)
        with pytest.raises(TypeError):
            RangeMapper((0.0, 1.0), egress=abs)


class TestSmoothing:
    """Exponential approach toward the latest valid target."""

    def test_converges_within_fifty_ticks(self):
        """From 0 toward 1 at 0.1 per tick: within 0.01 after 50 ticks."""
        smoother = SignalSmoother(rate=0.1)
        for _ in range(50):
            signal = smoother.update(1.0)
        assert abs(signal.value - 1.0) < 0.01
        assert signal.detected

    def test_monotonic_without_overshoot_upward(self):
        smoother = SignalSmoother(rate=0.1)
        values = [smoother.update(0.8).value for _ in range(200)]
        assert all(b >= a for a, b in zip(values, values[1:]))
        assert max(values) <= 0.8
        assert values[-1] == pytest.approx(0.8, abs=0.002)

    def test_monotonic_without_overshoot_downward(self):
        smoother = SignalSmoother(rate=0.25, initial=1.0)
        values = [smoother.update(0.2).value for _ in range(100)]
        assert all(b <= a for a, b in zip(values, values[1:]))
        assert min(values) >= 0.2
        assert values[-1] == pytest.approx(0.2, abs=0.002)

    def test_rate_one_jumps(self):
        smoother = SignalSmoother(rate=1.0)
        assert smoother.update(0.7).value == pytest.approx(0.7)

    @pytest.mark.parametrize("sample,target", [(5.0, 1.0), (-3.0, 0.0), (1.0000001, 1.0)])
    def test_out_of_range_samples_are_clamped(self, sample, target):
        """Out of range samples retarget to the nearest bound, no exception."""
        smoother = SignalSmoother(rate=0.5, initial=0.5)
        signal = smoother.update(sample)
        assert smoother.target == target
        assert 0.0 <= signal.value <= 1.0

    def test_deadband_holds_tiny_gaps(self):
        smoother = SignalSmoother(rate=0.5, initial=0.5)
        assert smoother.update(0.5005).value == 0.5

    def test_signal_type(self):
        signal = SignalSmoother().update(0.3)
        assert isinstance(signal, InteractionSignal)
        assert signal.detected

    @pytest.mark.parametrize("rate", [0.0, -0.1, 1.5])
    def test_invalid_rate_raises(self, rate):
        with pytest.raises(ValueError):
            SignalSmoother(rate=rate)

    def test_invalid_neutral_raises(self):
        with pytest.raises(ValueError):
            SignalSmoother(neutral=2.0)


class TestTimeScaledSmoothing:
    """Delta-time scaled smoothing, normalized to the reference frame rate."""

    def test_alpha_equals_rate_at_reference_fps(self):
        smoother = SignalSmoother(rate=0.1, time_scaled=True, reference_fps=60)
        assert smoother.alpha(1 / 60) == pytest.approx(0.1)

    def test_frame_rate_independent(self):
        """One 1/30 s tick moves as far as two 1/60 s ticks."""
        slow = SignalSmoother(rate=0.1, time_scaled=True, deadband=0.0)
        fast = SignalSmoother(rate=0.1, time_scaled=True, deadband=0.0)
        for _ in range(10):
            slow.update(1.0, dt=1 / 30)
            fast.update(1.0, dt=1 / 60)
            fast.update(1.0, dt=1 / 60)
        assert slow.value == pytest.approx(fast.value)

    def test_per_tick_ignores_dt(self):
        a = SignalSmoother(rate=0.1)
        b = SignalSmoother(rate=0.1)
        a.update(1.0, dt=1 / 30)
        b.update(1.0, dt=1 / 144)
        assert a.value == b.value

    @pytest.mark.parametrize("dt", [0.0, -1.0, float("nan")])
    def test_degenerate_dt_does_not_move(self, dt):
        smoother = SignalSmoother(rate=0.1, time_scaled=True)
        assert smoother.update(1.0, dt=dt).value == 0.0


class TestDetectionLost:
    """Both detection-lost policies."""

    def test_freeze_last_keeps_last_target(self):
        smoother = SignalSmoother(rate=0.1, lost_policy=DetectionLostPolicy.FREEZE_LAST)
        for _ in range(5):
            smoother.update(0.8)
        for _ in range(200):
            signal = smoother.update(NO_DETECTION)
        assert not signal.detected
        assert signal.value == pytest.approx(0.8, abs=0.01)

    def test_decay_to_neutral(self):
        smoother = SignalSmoother(rate=0.1, lost_policy="decay_to_neutral")
        for _ in range(100):
            smoother.update(0.95)
        for _ in range(100):
            signal = smoother.update(NO_DETECTION)
        assert not signal.detected
        assert signal.value == pytest.approx(0.5, abs=0.01)

    def test_decay_to_custom_neutral_is_monotonic(self):
        smoother = SignalSmoother(
            rate=0.2, lost_policy=DetectionLostPolicy.DECAY_TO_NEUTRAL, neutral=0.3, initial=1.0
        )
        values = [smoother.update(None).value for _ in range(60)]
        assert all(b <= a for a, b in zip(values, values[1:]))
        assert values[-1] == pytest.approx(0.3, abs=0.01)

    def test_reacquired_hand_retargets(self):
        smoother = SignalSmoother(rate=1.0, lost_policy="decay_to_neutral")
        smoother.update(None)
        assert smoother.update(0.1).value == pytest.approx(0.1)

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), -float("inf")])
    def test_non_finite_samples_count_as_lost(self, bad):
        smoother = SignalSmoother(rate=0.5)
        smoother.update(0.6)
        signal = smoother.update(bad)
        assert not signal.detected
        assert smoother.target == 0.6
        assert math.isfinite(signal.value)

    def test_unknown_policy_raises(self):
        with pytest.raises(ValueError):
            SignalSmoother(lost_policy="explode")


class TestSampleMailbox:
    """Handoff of raw samples from the detector to the render loop."""

    def test_empty_mailbox_reads_no_detection(self):
        assert SampleMailbox().latest() is NO_DETECTION

    def test_latest_sample_wins(self):
        box = SampleMailbox()
        for sample in (0.1, 0.2, 0.9):
            box.post(sample)
        assert box.latest() == 0.9
        assert box.n_posted == 3

    def test_stale_sample_reads_no_detection(self):
        clock = FakeClock()
        box = SampleMailbox(stale_after=0.5, clock=clock)
        box.post(0.7)
        clock.t = 0.4
        assert box.latest() == 0.7
        clock.t = 0.6
        assert box.latest() is NO_DETECTION

    def test_smoother_ticks_from_mailbox(self):
        """The smoother keeps ticking whether or not new samples come in."""
        clock = FakeClock()
        box = SampleMailbox(stale_after=1.0, clock=clock)
        smoother = SignalSmoother(rate=0.5, lost_policy="decay_to_neutral")

        box.post(1.0)
        for _ in range(5):
            signal = smoother.tick(box)
        assert signal.detected
        assert signal.value > 0.9
        clock.t = 5.0
        values = [smoother.tick(box).value for _ in range(50)]
        assert not smoother.signal.detected
        assert values[-1] == pytest.approx(0.5, abs=0.01)
        assert np.all(np.isfinite(values))

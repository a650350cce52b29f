"""

A point cloud that morphs, in real time, between procedurally generated shapes
(heart, flower, saturn, buddha, firework), driven by how open your hand is.

Closing the hand (pinching thumb and index together) draws the points into a tight,
recognizable shape. Opening it expands the cloud, shakes it with time-varying noise
and spins it faster.

The pieces, leaves first:

* shapes.py: One sampler per shape kind, each populating a fixed-size point set.
    ``generate(kind, count, rng)`` is the entry point.
* smoothing.py: Turns the noisy, sometimes missing, hand measurement into one stable
    interaction value per frame (``SignalSmoother``), with an explicit policy for
    what happens when the hand is lost.
* morph.py: ``MorphEngine`` owns the live points and, each frame, pulls them toward
    the (expanded, perturbed) target and advances the rotation.

Around them, adapters to actually see and drive it:

* hand_features.py: MediaPipe hand landmarks to raw interaction samples.
* display.py: OpenCV preview of the point cloud.
* script_utils.py: The interactive loop and the command line interface.

"""

from handmorph.shapes import ShapeKind, InvalidShapeKind, generate, shape_samplers
from handmorph.smoothing import (
    NO_DETECTION,
    DetectionLostPolicy,
    InteractionSignal,
    SampleMailbox,
    SignalSmoother,
    normalize_pinch,
)
from handmorph.morph import MorphEngine, MorphParameters

"""Hand landmark detection and the interaction metrics derived from it."""

import math
from typing import Callable, Dict, Optional, Sequence, Tuple

import cv2
import mediapipe as mp

from handmorph.smoothing import NO_DETECTION, RangeMapper, Sample
from handmorph.util import HandLandmark, data_files

# Path to the hand landmarker model
hand_landmarker_path = str(data_files / 'hand_landmarker.task')


class DetectorUnavailable(Exception):
    """Raised when the hand landmarker can't be created (missing model, no backend...)."""

    pass


# -------------------------------------------------------------------------------
# Hand Landmark Detector
# -------------------------------------------------------------------------------


class HandLandmarkDetector:
    """
    A class to detect hand landmarks using MediaPipe's HandLandmarker, in video mode.

    Attributes:
        model_path (str): Path to the ``hand_landmarker.task`` model bundle.
        max_hands (int): Maximum number of hands to detect.
        detection_con (float): Minimum detection confidence threshold.
        track_con (float): Minimum tracking confidence threshold.
    """

    def __init__(
        self,
        model_path=hand_landmarker_path,
        *,
        max_hands=1,
        detection_con=0.5,
        track_con=0.5,
    ):
        self.model_path = str(model_path)
        self.max_hands = max_hands
        self.detection_con = detection_con
        self.track_con = track_con
        self._last_timestamp_ms = -1

        self.base_options = mp.tasks.BaseOptions(model_asset_path=self.model_path)
        self.options = mp.tasks.vision.HandLandmarkerOptions(
            base_options=self.base_options,
            running_mode=mp.tasks.vision.RunningMode.VIDEO,
            num_hands=self.max_hands,
            min_hand_detection_confidence=self.detection_con,
            min_tracking_confidence=self.track_con,
        )
        try:
            self.landmarker = mp.tasks.vision.HandLandmarker.create_from_options(
                self.options
            )
        except (RuntimeError, ValueError, OSError) as e:
            raise DetectorUnavailable(
                f"Could not create the hand landmarker from {self.model_path}: {e}"
            ) from e

    def detect(self, img, timestamp_ms: int):
        """
        Detects the first hand in the provided BGR image.

        Args:
            img: The input image (BGR, as read by OpenCV).
            timestamp_ms: Frame timestamp, in milliseconds. Must increase from call
                to call.

        Returns:
            The landmarks of the first detected hand, or None

        Raises:
            ValueError: If the timestamp doesn't increase
        """
        timestamp_ms = int(timestamp_ms)
        if timestamp_ms <= self._last_timestamp_ms:
            raise ValueError(
                f"Timestamp {timestamp_ms} ms is not after {self._last_timestamp_ms} ms"
            )
        self._last_timestamp_ms = timestamp_ms

        img_rgb = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=img_rgb)
        result = self.landmarker.detect_for_video(mp_image, timestamp_ms)
        if not result.hand_landmarks:
            return None
        return result.hand_landmarks[0]

    def close(self):
        self.landmarker.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


# -------------------------------------------------------------------------------
# Hand feature extraction helpers
# -------------------------------------------------------------------------------


def coords(landmark) -> Tuple[float, float, float]:
    return (landmark.x, landmark.y, landmark.z)


def calculate_euclidean_distance(point1, point2):
    """Calculate the Euclidean distance between two 3D points."""
    return math.sqrt(
        (point1[0] - point2[0]) ** 2
        + (point1[1] - point2[1]) ** 2
        + (point1[2] - point2[2]) ** 2
    )


def thumb_index_distance(landmarks: Sequence) -> float:
    """Distance between the thumb tip and the index finger tip (the "pinch")."""
    return calculate_euclidean_distance(
        coords(landmarks[HandLandmark.THUMB_TIP]),
        coords(landmarks[HandLandmark.INDEX_FINGER_TIP]),
    )


def hand_openness(landmarks: Sequence) -> float:
    """Mean distance from the palm center to the four finger tips."""
    wrist = coords(landmarks[HandLandmark.WRIST])
    middle_mcp = coords(landmarks[HandLandmark.MIDDLE_FINGER_MCP])
    palm_center = tuple((a + b) / 2 for a, b in zip(wrist, middle_mcp))
    tips = (
        HandLandmark.INDEX_FINGER_TIP,
        HandLandmark.MIDDLE_FINGER_TIP,
        HandLandmark.RING_FINGER_TIP,
        HandLandmark.PINKY_TIP,
    )
    return sum(
        calculate_euclidean_distance(palm_center, coords(landmarks[tip]))
        for tip in tips
    ) / len(tips)


# -------------------------------------------------------------------------------
# Interaction samples
# -------------------------------------------------------------------------------

# name -> (metric function, (closed, open) window of the raw metric)
interaction_metrics: Dict[str, Tuple[Callable, Tuple[float, float]]] = {
    'pinch': (thumb_index_distance, (0.02, 0.2)),
    'openness': (hand_openness, (0.05, 0.3)),
}

DFLT_INTERACTION_METRIC = 'pinch'


def interaction_sample(
    landmarks: Optional[Sequence], metric: str = DFLT_INTERACTION_METRIC
) -> Sample:
    """
    Turn the landmarks of one hand into a raw interaction sample in [0, 1].

    Args:
        landmarks: The 21 landmarks of a hand, or None if no hand was found
        metric: Key of ``interaction_metrics``

    Returns:
        The normalized metric (0 closed, 1 open), or ``NO_DETECTION``
    """
    if metric not in interaction_metrics:
        raise ValueError(
            f"Unknown interaction metric: {metric}. "
            f"Expected one of {sorted(interaction_metrics)}"
        )
    if not landmarks:
        return NO_DETECTION
    func, window = interaction_metrics[metric]
    return RangeMapper(window)(func(landmarks))

"""Utility functions for running the hand-driven point cloud."""

import cv2
import time
import json
import threading
from dataclasses import asdict
from itertools import cycle, islice
from typing import Union, Callable, Dict, Optional, Any, TypeVar
from functools import partial

from handmorph.shapes import ShapeKind, resolve_shape_kind
from handmorph.smoothing import (
    NO_DETECTION,
    SampleMailbox,
    SignalSmoother,
    DetectionLostPolicy,
    lost_policies,
    DFLT_SMOOTHING_RATE,
)
from handmorph.morph import MorphEngine, DFLT_PARTICLE_COUNT, DFLT_SHAPE
from handmorph.display import PALETTE, DFLT_COLOR, draw_on_screen as DFLT_DRAW_ON_SCREEN
from handmorph.util import return_none as do_nothing, current_time_string_with_milliseconds

# -------------------------------------------------------------------------------
# Object resolution
# -------------------------------------------------------------------------------

T = TypeVar('T')


def resolve_object(
    obj: Union[str, T],
    *,
    object_map: Dict[str, T],
    expected_type: type = None,
    error_message: str = None,
) -> T:
    """
    Resolves an object by either returning it directly if it's of the correct type,
    or looking it up in a mapping if it's a string.

    Args:
        obj: The object to resolve. Can be a string (to be looked up in object_map)
             or the object itself (if it's already of type T).
        object_map: A dictionary mapping strings to objects of type T.
        expected_type: (Optional) The expected type of the resolved object.
                       If provided, raises a TypeError if the resolved object
                       is not of this type.
        error_message: (Optional) A custom error message to use if a ValueError
                       or TypeError is raised. If None, a default message is used.

    Returns:
        The resolved object of type T.

    Raises:
        TypeError: If obj is not a string or of the expected type, or if the
                   resolved object from the map is not of the expected type
                   (when expected_type is provided).
        ValueError: If obj is a string but is not found in object_map.
    """
    if isinstance(obj, str) and not (expected_type and isinstance(obj, expected_type)):
        if obj in object_map:
            resolved_obj = object_map[obj]
        else:
            msg = error_message or f"Unknown object identifier: {obj}"
            raise ValueError(msg)
    elif expected_type is None or isinstance(obj, expected_type):
        resolved_obj = obj
    else:
        msg = error_message or f"Expected type {expected_type}, got {type(obj)}"
        raise TypeError(msg)

    if expected_type and not isinstance(resolved_obj, expected_type):
        msg = (
            error_message
            or f"Resolved object should be of type {expected_type}, got {type(resolved_obj)}"
        )
        raise TypeError(msg)

    return resolved_obj


resolve_lost_policy = partial(
    resolve_object, object_map=lost_policies, expected_type=DetectionLostPolicy
)


# -------------------------------------------------------------------------------
# Logging utilities
# -------------------------------------------------------------------------------


def print_json_if_possible(x):
    """Prints the input as json (if it can be serialized) and adds a newline."""
    try:
        x = json.dumps(x)
    except (TypeError, ValueError):
        pass
    print(x)
    print()


# -------------------------------------------------------------------------------
# Keyboard handling functions
# -------------------------------------------------------------------------------

ESCAPE_KEY_ASCII = 27
BREAK_KEYS = {ESCAPE_KEY_ASCII, ord('q')}
NEXT_COLOR_KEY = ord('c')
SHAPE_KEYS = {ord(str(i)): kind for i, kind in enumerate(ShapeKind, start=1)}


class KeyboardBreakSignal(Exception):
    """Exception raised when a break key is pressed."""

    pass


def read_keyboard(wait_time: int = 1) -> int:
    """
    Read keyboard input with the specified wait time.

    Args:
        wait_time: Time to wait for keyboard input in milliseconds

    Returns:
        The key code, or 255 if no key was pressed
    """
    return cv2.waitKey(wait_time) & 0xFF


def keyboard_feature_vector(key_code: int) -> Dict[str, Any]:
    """
    Convert a key code into a feature vector with keyboard information.

    Args:
        key_code: The key code from cv2.waitKey

    Returns:
        Dictionary containing keyboard features: the ShapeKind selected by the key
        (or None) and whether the key asks for the next color

    Raises:
        KeyboardBreakSignal: If a key that signals program termination is pressed
    """
    keyboard_fv = {
        'key_code': key_code,
        'key_pressed': 0 < key_code < 255,
        'is_escape': key_code == ESCAPE_KEY_ASCII,
        'shape': SHAPE_KEYS.get(key_code),
        'next_color': key_code == NEXT_COLOR_KEY,
        'timestamp': time.time(),
    }

    if keyboard_fv['key_code'] in BREAK_KEYS:
        raise KeyboardBreakSignal(f"Break key pressed: {key_code}")

    return keyboard_fv


# -------------------------------------------------------------------------------
# Camera handling functions
# -------------------------------------------------------------------------------


class CameraReadError(Exception):
    """Exception raised when camera read fails."""

    pass


def read_camera(cap: cv2.VideoCapture) -> Any:
    """
    Read a frame from the camera.

    Args:
        cap: OpenCV video capture object

    Returns:
        The image if successful

    Raises:
        CameraReadError: If the camera read operation fails
    """
    success, img = cap.read()
    if not success:
        raise CameraReadError("Failed to read from camera")
    return img


class DetectorThread(threading.Thread):
    """
    Reads camera frames, detects the hand and posts raw interaction samples to a
    mailbox, at whatever pace the camera and the detector allow.

    Args:
        cap: Opened ``cv2.VideoCapture`` (anything with a ``read()`` method)
        detector: Object with a ``detect(img, timestamp_ms)`` method returning
            landmarks or None
        mailbox: Where samples are posted
        sample_func: Maps landmarks (or None) to a raw sample
    """

    def __init__(
        self,
        cap,
        detector,
        mailbox: SampleMailbox,
        sample_func: Callable,
        *,
        clock=time.monotonic,
    ):
        super().__init__(name='handmorph-detector', daemon=True)
        self.cap = cap
        self.detector = detector
        self.mailbox = mailbox
        self.sample_func = sample_func
        self.clock = clock
        self.error: Optional[Exception] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._frame = None
        self._landmarks = None
        self._last_timestamp_ms = None

    def step(self):
        """
        Process one frame. Raises CameraReadError if the camera fails.

        A frame read within the same millisecond as the previous one is dropped
        without posting anything, since the detector needs increasing timestamps.
        """
        img = read_camera(self.cap)
        timestamp_ms = int(self.clock() * 1000)
        if self._last_timestamp_ms is not None and timestamp_ms <= self._last_timestamp_ms:
            return
        self._last_timestamp_ms = timestamp_ms
        landmarks = self.detector.detect(img, timestamp_ms)
        self.mailbox.post(self.sample_func(landmarks))
        with self._lock:
            self._frame, self._landmarks = img, landmarks

    def run(self):
        try:
            while not self._stop_event.is_set():
                self.step()
        except Exception as e:  # camera or detector failure: fall back to no hand
            self.error = e
            self.mailbox.post(NO_DETECTION)

    def stop(self, timeout: Optional[float] = 1.0):
        """Ask the thread to finish its current frame and exit. Returns True if it did."""
        self._stop_event.set()
        if self.is_alive():
            self.join(timeout)
        return not self.is_alive()

    @property
    def latest(self):
        """The last processed ``(frame, landmarks)``."""
        with self._lock:
            return self._frame, self._landmarks


def start_detection(
    mailbox: SampleMailbox,
    *,
    camera_index: int = 0,
    model_path: Optional[str] = None,
    interaction_metric: str = 'pinch',
):
    """
    Open the camera and start a DetectorThread.

    Returns:
        ``(thread, cap)``, or ``(None, None)`` if the camera or the detector
        aren't available, in which case the animation runs on ``NO_DETECTION``.
    """
    # Import here so the mediapipe machinery only loads when detection is wanted
    from handmorph.hand_features import (
        HandLandmarkDetector,
        DetectorUnavailable,
        interaction_sample,
        interaction_metrics,
    )

    if interaction_metric not in interaction_metrics:
        raise ValueError(
            f"Unknown interaction metric: {interaction_metric}. "
            f"Expected one of {sorted(interaction_metrics)}"
        )

    cap = cv2.VideoCapture(camera_index)
    if not cap.isOpened():
        print(f"Warning: could not open camera {camera_index}, running without hands")
        return None, None
    try:
        if model_path is None:
            detector = HandLandmarkDetector()
        else:
            detector = HandLandmarkDetector(model_path)
    except DetectorUnavailable as e:
        print(f"Warning: {e}. Running without hands")
        cap.release()
        return None, None

    sample_func = partial(interaction_sample, metric=interaction_metric)
    thread = DetectorThread(cap, detector, mailbox, sample_func)
    thread.start()
    return thread, cap


# -------------------------------------------------------------------------------
# Main run function
# -------------------------------------------------------------------------------

DFLT_WINDOW_NAME = 'Hand Morph'
DFLT_LOST_POLICY = DetectionLostPolicy.FREEZE_LAST
DFLT_STALE_AFTER = 0.5


def morph_status(shape, signal, params) -> Dict[str, Any]:
    """The dict shown on screen and passed to the log callbacks."""
    return {
        'shape': ShapeKind(shape).value,
        'hand': 'detected' if signal.detected else 'none',
        'interaction': float(signal.value),
        'expansion': float(params.expansion_factor),
        'chaos': float(params.chaos_amplitude),
    }


def palette_after(color: str):
    """
    Cycle over PALETTE, starting right after ``color`` (or at the start of the
    palette when ``color`` isn't in it).

    >>> list(islice(palette_after('#4ECDC4'), 2))
    ['#FFE66D', '#F7FFF7']
    """
    upper = [c.upper() for c in PALETTE]
    start = upper.index(color.upper()) + 1 if color.upper() in upper else 0
    return islice(cycle(PALETTE), start, None)


def morph_record(engine: MorphEngine, params) -> Dict[str, Any]:
    """The dict passed to ``log_morph``: the morph parameters, rotation and clock."""
    return dict(
        asdict(params),
        rotation=list(engine.rotation),
        elapsed=float(engine.elapsed),
    )


def run_handmorph(
    *,
    shape: Union[str, ShapeKind] = DFLT_SHAPE,
    color: str = DFLT_COLOR,
    particle_count: int = DFLT_PARTICLE_COUNT,
    interaction_metric: str = 'pinch',
    lost_policy: Union[str, DetectionLostPolicy] = DFLT_LOST_POLICY,
    smoothing_rate: float = DFLT_SMOOTHING_RATE,
    time_scaled_smoothing: bool = False,
    stale_after: Optional[float] = DFLT_STALE_AFTER,
    use_camera: bool = True,
    camera_index: int = 0,
    model_path: Optional[str] = None,
    seed: Optional[int] = None,
    log_interaction: Optional[Callable] = None,
    log_morph: Optional[Callable] = None,
    window_name: str = DFLT_WINDOW_NAME,
    draw_on_screen: Callable = DFLT_DRAW_ON_SCREEN,
):
    """
    Run the hand-driven point cloud until Esc or ``q`` is pressed.

    Keys ``1`` to ``5`` switch shape, ``c`` cycles the color.

    Args:
        shape: Initial shape
        color: Initial point color (hex string)
        particle_count: Number of points
        interaction_metric: 'pinch' or 'openness'
        lost_policy: What the signal does when the hand is lost
        smoothing_rate: Fraction of the gap closed per smoothing step
        time_scaled_smoothing: Scale smoothing by frame time instead of per frame
        stale_after: Seconds after which an un-refreshed sample counts as lost
        use_camera: Set to False to run without hand detection
        camera_index: OpenCV camera index
        model_path: Path to the MediaPipe hand landmarker model
        seed: Seed for the point sampling
        log_interaction: Function called with the status dict every frame (or None)
        log_morph: Function called with the morph parameters every frame (or None)
        window_name: Title for the display window
        draw_on_screen: Function rendering the frame
    """
    shape = resolve_shape_kind(shape)
    lost_policy = resolve_lost_policy(lost_policy)
    log_interaction = log_interaction or do_nothing
    log_morph = log_morph or do_nothing

    engine = MorphEngine(shape, particle_count, rng=seed)
    smoother = SignalSmoother(
        smoothing_rate, lost_policy=lost_policy, time_scaled=time_scaled_smoothing
    )
    mailbox = SampleMailbox(stale_after)

    thread, cap = None, None
    if use_camera:
        thread, cap = start_detection(
            mailbox,
            camera_index=camera_index,
            model_path=model_path,
            interaction_metric=interaction_metric,
        )

    colors = palette_after(color)
    n_frames = 0
    camera_error_reported = False
    started_at = last_time = time.perf_counter()
    print(f"\nMorphing {particle_count} points, starting with {shape.value}\n")

    try:
        while True:
            try:
                keyboard_fv = keyboard_feature_vector(read_keyboard())
            except KeyboardBreakSignal:
                break

            if keyboard_fv['shape'] is not None and keyboard_fv['shape'] != engine.shape:
                engine.set_shape(keyboard_fv['shape'])
                print(f"Shape: {engine.shape.value}")
            if keyboard_fv['next_color']:
                color = next(colors)

            now = time.perf_counter()
            dt, last_time = now - last_time, now

            signal = smoother.tick(mailbox, dt)
            params = engine.tick(signal, dt)
            status = morph_status(engine.shape, signal, params)
            log_interaction(
                dict(status, time=current_time_string_with_milliseconds())
            )
            log_morph(morph_record(engine, params))

            frame, landmarks = thread.latest if thread else (None, None)
            if thread and thread.error and not camera_error_reported:
                print(f"Warning: detection stopped ({thread.error!r}). Running without hands")
                camera_error_reported = True

            img = draw_on_screen(
                engine.positions,
                engine.rotation_matrix(),
                status,
                color=color,
                frame=frame,
                landmarks=landmarks,
            )
            cv2.imshow(window_name, img)
            n_frames += 1

    finally:
        if thread:
            if thread.stop():
                thread.detector.close()
        if cap is not None:
            cap.release()
        cv2.destroyAllWindows()

        elapsed = time.perf_counter() - started_at
        fps = n_frames / elapsed if elapsed > 0 else 0.0
        print(f"\n---> Rendered {n_frames} frames ({fps:.1f} fps)\n")


def handmorph_cli(
    # Core components
    shape: str = DFLT_SHAPE.value,
    color: str = DFLT_COLOR,
    particle_count: int = DFLT_PARTICLE_COUNT,
    # Signal options
    interaction_metric: str = 'pinch',
    lost_policy: str = DFLT_LOST_POLICY.value,
    smoothing_rate: float = DFLT_SMOOTHING_RATE,
    time_scaled_smoothing: bool = False,
    # Input options
    no_camera: bool = False,
    camera_index: int = 0,
    model_path: str = None,
    seed: int = None,
    # Logging options
    log_interaction: bool = False,
    log_morph: bool = False,
    # Display options
    window_name: str = DFLT_WINDOW_NAME,
    # List available components
    list_shapes: bool = False,
    list_metrics: bool = False,
    list_policies: bool = False,
):
    """
    Run the hand-driven point cloud with the specified parameters.

    Args:
        shape: Initial shape
        color: Initial point color, as a hex string
        particle_count: Number of points in the cloud
        interaction_metric: Hand metric driving the interaction
        lost_policy: What happens to the interaction when the hand is lost
        smoothing_rate: Fraction of the gap closed per smoothing step
        time_scaled_smoothing: Scale smoothing with frame time
        no_camera: Run without camera and hand detection
        camera_index: OpenCV camera index
        model_path: Path to the MediaPipe hand landmarker model
        seed: Random seed for the shapes
        log_interaction: Whether to log the interaction status every frame
        log_morph: Whether to log the morph parameters every frame
        window_name: Title for the display window
        list_shapes: List available shapes and exit
        list_metrics: List available interaction metrics and exit
        list_policies: List available detection-lost policies and exit
    """
    if list_shapes:
        print("Available shapes:")
        for kind in ShapeKind:
            print(f"  - {kind.value}")
        return

    if list_metrics:
        # Import here to avoid loading mediapipe if just listing components
        from handmorph.hand_features import interaction_metrics

        print("Available interaction metrics:")
        for name in sorted(interaction_metrics):
            print(f"  - {name}")
        return

    if list_policies:
        print("Available detection-lost policies:")
        for name in sorted(lost_policies):
            print(f"  - {name}")
        return

    log_interaction_callback = print_json_if_possible if log_interaction else None

    run_handmorph(
        shape=shape,
        color=color,
        particle_count=particle_count,
        interaction_metric=interaction_metric,
        lost_policy=lost_policy,
        smoothing_rate=smoothing_rate,
        time_scaled_smoothing=time_scaled_smoothing,
        use_camera=not no_camera,
        camera_index=camera_index,
        model_path=model_path,
        seed=seed,
        log_interaction=log_interaction_callback,
        log_morph=print_json_if_possible if log_morph else None,
        window_name=window_name,
    )


def dispatched_handmorph_cli():
    import argh

    argh.dispatch_command(handmorph_cli)

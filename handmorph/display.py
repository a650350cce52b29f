"""Preview rendering of the point cloud with OpenCV."""

import math

import cv2
import numpy as np
from typing import Union, Tuple, Dict, Optional, Callable, Sequence

from handmorph.util import format_dict_values

# -------------------------------------------------------------------------------
# Types
# -------------------------------------------------------------------------------

Color = Union[Tuple[int, int, int], Tuple[int, int, int, int]]  # BGR or BGRA

PALETTE = (
    '#FF6B6B',  # Red
    '#4ECDC4',  # Teal
    '#FFE66D',  # Yellow
    '#F7FFF7',  # White
    '#FF00FF',  # Magenta
    '#1A535C',  # Dark Teal
    '#00BFFF',  # Deep Sky Blue
)
DFLT_COLOR = '#4ECDC4'
DFLT_SIZE = (720, 960)  # (height, width)
DFLT_CAMERA_DISTANCE = 8.0
DFLT_FOV_DEG = 60.0
DFLT_BACKGROUND = (5, 5, 5)


def hex_to_bgr(color: Union[str, Sequence[int]]) -> Tuple[int, int, int]:
    """
    Convert a ``'#RRGGBB'`` string to an OpenCV BGR tuple. Tuples pass through.

    >>> hex_to_bgr('#4ECDC4')
    (196, 205, 78)
    >>> hex_to_bgr((1, 2, 3))
    (1, 2, 3)
    """
    if not isinstance(color, str):
        return tuple(int(c) for c in color[:3])
    h = color.lstrip('#')
    if len(h) == 3:
        h = ''.join(c * 2 for c in h)
    if len(h) != 6:
        raise ValueError(f"Not a hex color: {color!r}")
    r, g, b = (int(h[i : i + 2], 16) for i in (0, 2, 4))
    return (b, g, r)


# -------------------------------------------------------------------------------
# Point cloud rendering
# -------------------------------------------------------------------------------


def project_points(
    points: np.ndarray,
    rotation: Optional[np.ndarray] = None,
    size: Tuple[int, int] = DFLT_SIZE,
    *,
    camera_distance: float = DFLT_CAMERA_DISTANCE,
    fov_deg: float = DFLT_FOV_DEG,
):
    """
    Perspective-project 3D points onto pixel coordinates.

    The camera sits on the +z axis at ``camera_distance``, looking at the origin.

    Args:
        points: ``(n, 3)`` array
        rotation: Optional ``(3, 3)`` rotation matrix applied to the points first
        size: ``(height, width)`` of the image

    Returns:
        tuple: ``(pixels, visible)``, an ``(n, 2)`` int array of (x, y) pixel
        coordinates and a boolean mask of points in front of the camera and
        inside the image
    """
    h, w = size
    points = np.asarray(points, dtype=float)
    if rotation is not None:
        points = points @ np.asarray(rotation).T
    depth = camera_distance - points[:, 2]
    in_front = depth > 1e-6
    depth = np.where(in_front, depth, 1.0)
    focal = (h / 2) / math.tan(math.radians(fov_deg) / 2)
    px = w / 2 + focal * points[:, 0] / depth
    py = h / 2 - focal * points[:, 1] / depth
    pixels = np.column_stack([px, py]).round().astype(int)
    visible = (
        in_front
        & (pixels[:, 0] >= 0)
        & (pixels[:, 0] < w)
        & (pixels[:, 1] >= 0)
        & (pixels[:, 1] < h)
    )
    return pixels, visible


def render_point_cloud(
    points: np.ndarray,
    rotation: Optional[np.ndarray] = None,
    *,
    color: Union[str, Color] = DFLT_COLOR,
    size: Tuple[int, int] = DFLT_SIZE,
    point_size: int = 2,
    opacity: float = 0.8,
    background: Color = DFLT_BACKGROUND,
    camera_distance: float = DFLT_CAMERA_DISTANCE,
):
    """
    Draw the points additively (overlapping points get brighter) on a dark image.

    Returns:
        np.ndarray: A ``(height, width, 3)`` uint8 BGR image
    """
    h, w = size
    pixels, visible = project_points(
        points, rotation, size, camera_distance=camera_distance
    )
    pixels = pixels[visible]

    hits = np.zeros((h, w), dtype=np.float32)
    np.add.at(hits, (pixels[:, 1], pixels[:, 0]), opacity)
    if point_size > 1:
        kernel = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (point_size, point_size))
        hits = cv2.dilate(hits, kernel)
    intensity = np.clip(hits, 0.0, 1.0)[..., None]

    bgr = np.array(hex_to_bgr(color), dtype=np.float32)
    bg = np.array(background[:3], dtype=np.float32)
    img = bg + intensity * bgr
    return np.clip(img, 0, 255).astype(np.uint8)


# -------------------------------------------------------------------------------
# Overlays
# -------------------------------------------------------------------------------


def display_features_on_image(
    img: np.ndarray,
    features: dict,
    *,
    font=cv2.FONT_HERSHEY_SIMPLEX,
    font_scale: float = 0.6,
    color: Color = (230, 230, 230),
    thickness: int = 1,
    x_pos=16,
    y_pos=30,
    y_increment=26,
    bg_color: Color = (
        60,
        60,
        60,
        128,
    ),  # Dark grey, semi-transparent (BGR + alpha)
):
    """
    Display features on the image with a semi-transparent background.

    Args:
        img: The image to draw on
        features: Dictionary of features (floats are rounded)
        font: Font type to use
        font_scale: Size of the font
        color: Text color in BGR format
        thickness: Line thickness of text
        x_pos: Starting x position for text
        y_pos: Starting y position for text
        y_increment: Vertical space between lines
        bg_color: Background color (BGR + alpha) where alpha is 0-255
    """
    if not features:
        return img

    overlay = img.copy()

    if len(bg_color) == 4:
        bg_rgb = bg_color[:3]
        alpha = bg_color[3] / 255.0
    else:
        bg_rgb = bg_color
        alpha = 0.5

    lines = [f"{key}: {value}" for key, value in format_dict_values(features).items()]

    padding = 5
    for idx, text in enumerate(lines):
        (text_width, text_height), _ = cv2.getTextSize(
            text, font, font_scale, thickness
        )
        cv2.rectangle(
            overlay,
            (x_pos - padding, y_pos + idx * y_increment - text_height - padding),
            (x_pos + text_width + padding, y_pos + idx * y_increment + padding),
            bg_rgb,
            -1,
        )

    cv2.addWeighted(overlay, alpha, img, 1 - alpha, 0, img)

    for idx, text in enumerate(lines):
        cv2.putText(
            img,
            text,
            (x_pos, y_pos + idx * y_increment),
            font,
            font_scale,
            color,
            thickness,
        )

    return img


def draw_camera_thumbnail(
    img: np.ndarray,
    frame: np.ndarray,
    landmarks=None,
    *,
    width: int = 160,
    margin: int = 16,
    landmark_color: Color = (0, 255, 0),
):
    """
    Paste a mirrored, downscaled camera frame in the bottom-right corner, with the
    hand landmarks (normalized image coordinates) drawn on it.
    """
    h, w = img.shape[:2]
    fh, fw = frame.shape[:2]
    height = max(1, int(round(width * fh / fw)))
    if width + margin > w or height + margin > h:
        return img
    thumb = cv2.resize(cv2.flip(frame, 1), (width, height))
    if landmarks:
        for lm in landmarks:
            cx, cy = int((1 - lm.x) * width), int(lm.y * height)
            cv2.circle(thumb, (cx, cy), 2, landmark_color, -1)
    img[h - margin - height : h - margin, w - margin - width : w - margin] = thumb
    return img


def draw_on_screen(
    points: np.ndarray,
    rotation: Optional[np.ndarray] = None,
    features: Optional[dict] = None,
    *,
    color: Union[str, Color] = DFLT_COLOR,
    size: Tuple[int, int] = DFLT_SIZE,
    frame: Optional[np.ndarray] = None,
    landmarks=None,
    draw_features: Optional[Callable] = display_features_on_image,
):
    """
    Render the point cloud, then the status features and the camera thumbnail.

    Args:
        points: The ``(n, 3)`` point cloud
        rotation: Rotation matrix of the whole cloud
        features: Status values to display
        color: Point color (hex string or BGR)
        size: ``(height, width)`` of the output image
        frame: Latest camera frame, if any
        landmarks: Hand landmarks to draw on the thumbnail
        draw_features: Function to draw features (or None to skip)

    Returns:
        img: The rendered image
    """
    img = render_point_cloud(points, rotation, color=color, size=size)
    if draw_features and features:
        img = draw_features(img, features)
    if frame is not None:
        img = draw_camera_thumbnail(img, frame, landmarks)
    return img

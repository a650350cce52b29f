"""Tests for the OpenCV preview renderer."""

import numpy as np
import pytest

from handmorph.display import (
    DFLT_BACKGROUND,
    PALETTE,
    display_features_on_image,
    draw_on_screen,
    hex_to_bgr,
    project_points,
    render_point_cloud,
)
from handmorph.shapes import generate

SIZE = (120, 160)


class TestColors:
    def test_hex_to_bgr(self):
        assert hex_to_bgr('#FF6B6B') == (107, 107, 255)
        assert hex_to_bgr('00BFFF') == (255, 191, 0)
        assert hex_to_bgr('#fff') == (255, 255, 255)

    def test_palette_parses(self):
        assert all(len(hex_to_bgr(c)) == 3 for c in PALETTE)

    def test_bad_hex_raises(self):
        with pytest.raises(ValueError):
            hex_to_bgr('#12345')


class TestProjection:
    def test_origin_projects_to_center(self):
        pixels, visible = project_points(np.zeros((1, 3)), size=SIZE)
        assert tuple(pixels[0]) == (80, 60)
        assert visible[0]

    def test_up_is_up(self):
        """Positive y goes toward the top of the image, positive x to the right."""
        pixels, _ = project_points(np.array([[1.0, 1.0, 0.0]]), size=SIZE)
        assert pixels[0, 0] > 80
        assert pixels[0, 1] < 60

    def test_points_behind_camera_are_hidden(self):
        _, visible = project_points(np.array([[0.0, 0.0, 9.0]]), size=SIZE)
        assert not visible[0]

    def test_rotation_is_applied(self):
        quarter_turn_z = np.array([[0.0, -1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])
        pixels, _ = project_points(np.array([[1.0, 0.0, 0.0]]), quarter_turn_z, size=SIZE)
        assert pixels[0, 0] == 80
        assert pixels[0, 1] < 60


class TestRendering:
    def test_render_shape_and_content(self):
        points = generate('firework', 2000, rng=0)
        img = render_point_cloud(points, size=SIZE, color='#4ECDC4')
        assert img.shape == (*SIZE, 3)
        assert img.dtype == np.uint8
        assert (img != np.array(DFLT_BACKGROUND, dtype=np.uint8)).any()

    def test_empty_cloud_renders_background(self):
        img = render_point_cloud(np.empty((0, 3)), size=SIZE)
        assert (img == np.array(DFLT_BACKGROUND, dtype=np.uint8)).all()

    def test_overlay_keeps_image_shape(self):
        img = np.zeros((*SIZE, 3), dtype=np.uint8)
        out = display_features_on_image(img, {'shape': 'heart', 'interaction': 0.25})
        assert out.shape == img.shape
        assert out.any()

    def test_overlay_without_features_is_identity(self):
        img = np.zeros((*SIZE, 3), dtype=np.uint8)
        assert display_features_on_image(img, {}) is img

    def test_draw_on_screen_with_camera_frame(self):
        points = generate('heart', 500, rng=0)
        frame = np.full((48, 64, 3), 200, dtype=np.uint8)
        img = draw_on_screen(
            points, np.eye(3), {'shape': 'heart'}, size=(240, 320), frame=frame
        )
        assert img.shape == (240, 320, 3)
        # the thumbnail sits in the bottom-right corner
        assert (img[-20, -20] == 200).all()

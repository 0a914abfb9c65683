"""
CPU reference operator: the properties every Sobel implementation here
must satisfy, checked against scipy.
"""
import numpy as np
import pytest

from gpu_sobel.reference import cpu_process_image, gradient_magnitude
from gpu_sobel.synthetic import disc_pattern, flat_image, step_image


@pytest.mark.parametrize("c", [0, 1, 17, 128, 254, 255])
def test_flat_image_has_no_gradient(c):
    out = cpu_process_image(flat_image(c)).to_array()
    assert not out[..., :3].any()
    assert (out[..., 3] == 255).all()


def test_step_edge_5x5():
    gray = np.zeros((5, 5), dtype=np.float32)
    gray[:, 2:] = 1.0
    magnitude = gradient_magnitude(gray)

    # Columns 1 and 2 straddle the step; 0, 3 and 4 are uniform.
    np.testing.assert_allclose(magnitude[:, [0, 3, 4]], 0.0, atol=1e-6)
    np.testing.assert_allclose(magnitude[:, [1, 2]], 4.0, atol=1e-6)


def test_step_edge_output_image():
    out = cpu_process_image(step_image()).to_array()[..., 0]
    assert not out[:, [0, 3, 4]].any()
    assert (out[:, [1, 2]] == 255).all()


def test_clamp_to_edge_border():
    # Single bright pixel in the corner: border neighbours replicate it.
    gray = np.zeros((4, 4), dtype=np.float32)
    gray[0, 0] = 1.0
    magnitude = gradient_magnitude(gray)

    # Gx at (0, 0): right column (0, 0, 0) minus left column (1, 2*1, 0) = -3
    # Gy at (0, 0): bottom row (0, 0, 0) minus top row (1, 2*1, 0) = -3
    assert magnitude[0, 0] == pytest.approx(np.sqrt(18.0), rel=1e-6)
    assert magnitude[3, 3] == 0.0


def test_reference_output_dimensions():
    image = disc_pattern(37, 21)
    out = cpu_process_image(image)
    assert (out.width, out.height) == (37, 21)

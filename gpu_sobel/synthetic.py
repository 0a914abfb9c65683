"""Synthetic grayscale images for self-checks and tests."""
import numpy as np

from .image_adapter import SourceImage


def gray_image(gray):
    """Replicate a (h, w) array into an RGBA SourceImage with alpha 255."""
    gray = np.asarray(gray, dtype=np.uint8)
    rgba = np.empty(gray.shape + (4,), dtype=np.uint8)
    rgba[..., :3] = gray[..., None]
    rgba[..., 3] = 255
    return SourceImage.from_array(rgba)


def step_image(width=5, height=5, edge_col=2):
    """Black columns left of ``edge_col``, white from it onwards."""
    gray = np.zeros((height, width), dtype=np.uint8)
    gray[:, edge_col:] = 255
    return gray_image(gray)


def flat_image(value, width=7, height=9):
    return gray_image(np.full((height, width), value))


def disc_pattern(width, height, seed=0):
    """Disc plus noise: curved edges at every orientation."""
    rng = np.random.default_rng(seed)
    yy, xx = np.mgrid[0:height, 0:width]
    radius = min(width, height) / 3
    disc = ((xx - width / 2) ** 2 + (yy - height / 2) ** 2 < radius ** 2) * 200
    noise = rng.integers(0, 40, size=(height, width))
    return gray_image(np.clip(disc + noise, 0, 255))

"""
Image Adapter - host-side conversion between RGBA8 pixels and the
float buffers the kernel reads and writes.

normalize() keeps only the red channel: the input is expected to be a
grayscale image stored as RGBA (R == G == B). Colour images are not
converted to luma, the green and blue channels are simply dropped.
"""
from dataclasses import dataclass

import numpy as np

from .errors import InvalidImage

CHANNELS = 4


@dataclass(frozen=True)
class SourceImage:
    """Decoded RGBA8 image, row-major, 4 bytes per pixel."""
    width: int
    height: int
    pixels: bytes

    @classmethod
    def from_array(cls, array):
        """Wrap an ``(height, width, 4)`` uint8 array."""
        array = np.asarray(array)
        if array.ndim != 3 or array.shape[2] != CHANNELS or array.dtype != np.uint8:
            raise InvalidImage(
                f"Expected a (height, width, 4) uint8 array, got {array.shape} {array.dtype}"
            )
        height, width = array.shape[:2]
        return cls(width, height, np.ascontiguousarray(array).tobytes())

    @property
    def expected_length(self):
        return int(self.width) * int(self.height) * CHANNELS


@dataclass(frozen=True)
class OutputImage:
    """Grayscale edge map stored as RGBA8, alpha always 255."""
    width: int
    height: int
    pixels: bytes

    def to_array(self):
        return np.frombuffer(self.pixels, dtype=np.uint8).reshape(self.height, self.width, CHANNELS)


def validate(image):
    """Fail fast on images the pipeline must not touch."""
    for name in ('width', 'height'):
        value = getattr(image, name)
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
            raise InvalidImage(f"{name} must be a positive integer, got {value!r}")
        if value > 0xFFFFFFFF:
            raise InvalidImage(f"{name} {value} does not fit in uint32")

    try:
        length = memoryview(image.pixels).nbytes
    except TypeError:
        raise InvalidImage(
            f"pixels must be a bytes-like object, got {type(image.pixels).__name__}"
        ) from None

    if length != image.expected_length:
        raise InvalidImage(
            f"{image.width}x{image.height} RGBA image needs {image.expected_length} bytes, "
            f"got {length}"
        )


def normalize(image):
    """Red channel scaled to [0, 1], one float32 per pixel."""
    rgba = np.frombuffer(image.pixels, dtype=np.uint8)
    return (rgba[0::CHANNELS].astype(np.float32) / np.float32(255.0))


def parameter_block(width, height):
    """The kernel's ``{uint width; uint height;}`` record."""
    return np.array([width, height], dtype=np.uint32)


def denormalize(result, width, height):
    """Turn gradient magnitudes into an RGBA edge map.

    Each value is scaled by 255, clamped to [0, 255] and rounded; NaN
    becomes 0.
    """
    if isinstance(result, (bytes, bytearray, memoryview)):
        values = np.frombuffer(result, dtype=np.float32)
    else:
        values = np.asarray(result, dtype=np.float32).ravel()

    if values.size != width * height:
        raise InvalidImage(
            f"Result holds {values.size} values, {width}x{height} needs {width * height}"
        )

    scaled = np.nan_to_num(values.astype(np.float64) * 255.0, nan=0.0, posinf=255.0, neginf=0.0)
    gray = np.rint(np.clip(scaled, 0.0, 255.0)).astype(np.uint8)

    rgba = np.empty((values.size, CHANNELS), dtype=np.uint8)
    rgba[:, 0] = gray
    rgba[:, 1] = gray
    rgba[:, 2] = gray
    rgba[:, 3] = 255
    return OutputImage(width, height, rgba.tobytes())

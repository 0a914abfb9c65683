"""
CPU reference for the Sobel kernel (scipy.ndimage).

Same operator, same clamp-to-edge border (mode='nearest'), used to check
device output and as a fallback for callers that have no OpenCL device.
"""
import numpy as np
from scipy import ndimage

from .image_adapter import denormalize, normalize, validate

SOBEL_X = np.array([[-1, 0, 1],
                    [-2, 0, 2],
                    [-1, 0, 1]], dtype=np.float32)

SOBEL_Y = np.array([[-1, -2, -1],
                    [0, 0, 0],
                    [1, 2, 1]], dtype=np.float32)


def gradient_magnitude(gray):
    """sqrt(Gx^2 + Gy^2) for a 2D float array."""
    gray = np.asarray(gray, dtype=np.float32)
    gx = ndimage.correlate(gray, SOBEL_X, mode='nearest')
    gy = ndimage.correlate(gray, SOBEL_Y, mode='nearest')
    return np.sqrt(gx * gx + gy * gy)


def cpu_process_image(image):
    """Whole pipeline on the CPU; returns an OutputImage."""
    validate(image)
    gray = normalize(image).reshape(image.height, image.width)
    return denormalize(gradient_magnitude(gray), image.width, image.height)

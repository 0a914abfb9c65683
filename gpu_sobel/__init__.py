"""GPU (OpenCL) Sobel edge detection for RGBA images."""
from .config import FilterConfig
from .errors import (
    BufferAllocationFailed,
    DeviceRequestFailed,
    DeviceTimeout,
    DispatchFailed,
    DispatchTimeout,
    FilterError,
    GpuUnavailable,
    InvalidImage,
    MapFailed,
    MapTimeout,
    ShaderCompileError,
    TokenAlreadyAwaited,
)
from .image_adapter import OutputImage, SourceImage
from .pipeline import SobelFilter, process_image, process_image_sync

__version__ = '0.1.0'

__all__ = [
    'BufferAllocationFailed',
    'DeviceRequestFailed',
    'DeviceTimeout',
    'DispatchFailed',
    'DispatchTimeout',
    'FilterConfig',
    'FilterError',
    'GpuUnavailable',
    'InvalidImage',
    'MapFailed',
    'MapTimeout',
    'OutputImage',
    'ShaderCompileError',
    'SobelFilter',
    'SourceImage',
    'TokenAlreadyAwaited',
    'process_image',
    'process_image_sync',
]

"""
Runtime configuration for the GPU Sobel pipeline.

Defaults live as module constants; ``FilterConfig.from_env()`` lets a
deployment override them without code changes, e.g.::

    GPU_SOBEL_PLATFORM=rusticl GPU_SOBEL_MAP_TIMEOUT=5 python -m gpu_sobel selftest
"""
import os
from dataclasses import dataclass, replace

# Configuration
MAP_TIMEOUT = 10.0       # seconds
DISPATCH_TIMEOUT = 30.0  # seconds
DEVICE_TYPES = ('gpu', 'accelerator', 'cpu', 'all')

ENV_PREFIX = 'GPU_SOBEL_'


@dataclass(frozen=True)
class FilterConfig:
    """Knobs for device selection, kernel loading and wait bounds.

    The workgroup tile and binding slots are deliberately absent: they
    belong to ``program.KernelInterface`` and change only together with
    the kernel source.
    """
    platform_filter: str = None
    device_type: str = 'all'
    map_timeout: float = MAP_TIMEOUT
    dispatch_timeout: float = DISPATCH_TIMEOUT
    kernel_path: str = None
    build_options: tuple = ()

    def __post_init__(self):
        if self.device_type not in DEVICE_TYPES:
            raise ValueError(
                f"device_type must be one of {', '.join(DEVICE_TYPES)}, "
                f"got {self.device_type!r}"
            )
        for name in ('map_timeout', 'dispatch_timeout'):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

    @classmethod
    def from_env(cls, environ=None, **overrides):
        """Build a config from ``GPU_SOBEL_*`` environment variables."""
        env = os.environ if environ is None else environ
        values = {}

        platform = env.get(ENV_PREFIX + 'PLATFORM')
        if platform:
            values['platform_filter'] = platform

        device_type = env.get(ENV_PREFIX + 'DEVICE_TYPE')
        if device_type:
            values['device_type'] = device_type.lower()

        for key, field in (('MAP_TIMEOUT', 'map_timeout'),
                           ('DISPATCH_TIMEOUT', 'dispatch_timeout')):
            raw = env.get(ENV_PREFIX + key)
            if raw:
                try:
                    values[field] = float(raw)
                except ValueError:
                    raise ValueError(f"{ENV_PREFIX}{key} must be a number, got {raw!r}") from None

        kernel_path = env.get(ENV_PREFIX + 'KERNEL_PATH')
        if kernel_path:
            values['kernel_path'] = kernel_path

        build_options = env.get(ENV_PREFIX + 'BUILD_OPTIONS')
        if build_options:
            values['build_options'] = tuple(build_options.split())

        values.update(overrides)
        return cls(**values)

    def with_overrides(self, **changes):
        return replace(self, **changes)

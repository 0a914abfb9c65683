"""
Device Context - find an OpenCL compute device and open a queue on it.

When several platforms are installed (NVIDIA + Intel + pocl is a common
mix on workstations) every platform/device pair is scored and the best
one wins. A platform name filter (``GPU_SOBEL_PLATFORM=rusticl``) pins
the choice when the score picks the wrong one.
"""
import logging
from contextlib import contextmanager

import pyopencl as cl

from .config import FilterConfig
from .errors import DeviceRequestFailed, DeviceTimeout, GpuUnavailable

logger = logging.getLogger(__name__)

_DEVICE_TYPE_MASKS = {
    'gpu': cl.device_type.GPU,
    'accelerator': cl.device_type.ACCELERATOR,
    'cpu': cl.device_type.CPU,
    'all': cl.device_type.ALL,
}


def score_platform_device(platform, device):
    """Score platform/device combination for best performance."""
    score = 0
    platform_name = platform.name.lower()

    # Vendor stacks first, portable implementations last
    if 'nvidia' in platform_name or 'cuda' in platform_name:
        score += 100
    elif 'amd' in platform_name or 'rocm' in platform_name:
        score += 90
    elif 'intel' in platform_name:
        score += 80
    elif 'rusticl' in platform_name or 'mesa' in platform_name:
        score += 70
    elif 'pocl' in platform_name:
        score += 60

    if device.type & cl.device_type.GPU:
        score += 50
    elif device.type & cl.device_type.ACCELERATOR:
        score += 40

    score += min(device.max_compute_units, 50)
    return score


def list_devices(config=None):
    """Return ``[(platform, device, score), ...]`` sorted best first.

    Raises GpuUnavailable when the ICD loader reports no platform at all
    or when nothing survives the configured filters.
    """
    config = config or FilterConfig()

    try:
        platforms = cl.get_platforms()
    except cl.Error as exc:
        raise GpuUnavailable(f"No OpenCL platform available: {exc}") from exc

    if not platforms:
        raise GpuUnavailable("No OpenCL platform available")

    if config.platform_filter:
        wanted = config.platform_filter.lower()
        platforms = [p for p in platforms if wanted in p.name.lower()]
        if not platforms:
            raise GpuUnavailable(
                f"No OpenCL platform matches {config.platform_filter!r}"
            )

    mask = _DEVICE_TYPE_MASKS[config.device_type]
    candidates = []
    for platform in platforms:
        try:
            devices = platform.get_devices(device_type=mask)
        except cl.Error:
            # DEVICE_NOT_FOUND for this type on this platform
            logger.debug("[DEVICE] %s exposes no %s device", platform.name, config.device_type)
            continue
        for device in devices:
            candidates.append((platform, device, score_platform_device(platform, device)))

    if not candidates:
        raise GpuUnavailable(
            f"No OpenCL {config.device_type} device found on "
            f"{', '.join(p.name for p in platforms)}"
        )

    candidates.sort(key=lambda item: item[2], reverse=True)
    return candidates


class DeviceHandle:
    """An OpenCL context plus the single in-order queue used for one filter.

    The handle can be reused across invocations as long as callers
    serialise them; ``SobelFilter`` does that with a lock.
    """

    def __init__(self, platform, device, context, queue):
        self.platform = platform
        self.device = device
        self.context = context
        self.queue = queue
        self.programs = {}
        self.released = False

    @property
    def name(self):
        return self.device.name.strip()

    @property
    def max_alloc_size(self):
        return self.device.max_mem_alloc_size

    @property
    def max_work_group_size(self):
        return self.device.max_work_group_size

    def release(self, drain=True):
        """Drop the context and queue; idempotent.

        With ``drain=False`` the queue is not finished. Use it after a
        timeout, when a stuck command would block ``finish()``; the runtime
        keeps in-flight objects alive until their commands complete.
        """
        if self.released:
            return
        self.released = True
        if drain:
            try:
                self.queue.finish()
            except cl.Error as exc:
                # device may be lost already
                logger.warning("[DEVICE] queue.finish() failed during release: %s", exc)
        else:
            logger.warning("[DEVICE] Releasing %s without draining the queue", self.name)
        self.programs.clear()
        self.queue = None
        self.context = None
        logger.debug("[DEVICE] Released %s", self.name)

    def __repr__(self):
        return f"<DeviceHandle {self.platform.name.strip()} / {self.name}>"


def acquire(config=None):
    """Open a context and command queue on the best available device."""
    config = config or FilterConfig()
    platform, device, score = list_devices(config)[0]

    try:
        context = cl.Context([device])
    except cl.Error as exc:
        raise DeviceRequestFailed(
            f"Failed to create an OpenCL context on {device.name.strip()}: {exc}"
        ) from exc

    try:
        queue = cl.CommandQueue(context, device)
    except cl.Error as exc:
        raise DeviceRequestFailed(
            f"Failed to create a command queue on {device.name.strip()}: {exc}"
        ) from exc

    logger.info(
        "[DEVICE] Auto-selected: %s - %s (score: %d, %d CUs)",
        platform.name.strip(), device.name.strip(), score, device.max_compute_units,
    )
    return DeviceHandle(platform, device, context, queue)


@contextmanager
def open_device(config=None):
    """Scoped acquisition: the handle is released on every exit path."""
    handle = acquire(config)
    drain = True
    try:
        yield handle
    except DeviceTimeout:
        # the timed-out command still holds the queue
        drain = False
        raise
    finally:
        handle.release(drain=drain)

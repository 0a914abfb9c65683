"""
Kernel Dispatcher - bind buffers to the Sobel kernel and submit one pass.

For a 1024x1024 image: 1024/16 = 64 groups per axis, so the device runs
64x64 = 4096 work-groups of 16x16 work-items, one work-item per pixel.
Sizes that are not a multiple of 16 round the grid up; the kernel skips
the work-items that fall outside the image.
"""
import asyncio
import logging
import math

import pyopencl as cl

from .errors import DispatchFailed, DispatchTimeout, TokenAlreadyAwaited
from .events import EventError, wait_event
from .program import KernelInterface

logger = logging.getLogger(__name__)


def workgroup_grid(width, height, tile=KernelInterface.TILE):
    """Number of work-groups along x and y."""
    return math.ceil(width / tile), math.ceil(height / tile)


class CompletionToken:
    """Submitted work that has not necessarily finished.

    Must be awaited exactly once, before anything reads the buffers the
    pass writes.
    """

    def __init__(self, event, grid):
        self.event = event
        self.grid = grid
        self.awaited = False

    async def wait(self, timeout=None):
        if self.awaited:
            raise TokenAlreadyAwaited("Completion token was already awaited")
        self.awaited = True

        try:
            await wait_event(self.event, timeout)
        except asyncio.TimeoutError:
            raise DispatchTimeout(timeout) from None
        except EventError as exc:
            raise DispatchFailed(f"Sobel kernel failed with status {exc.status}") from exc
        except cl.Error as exc:
            raise DispatchFailed(f"Sobel kernel failed: {exc}") from exc

        logger.debug("[DISPATCH] Pass over %dx%d groups complete", *self.grid)

    def __repr__(self):
        state = 'awaited' if self.awaited else 'pending'
        return f"<CompletionToken grid={self.grid[0]}x{self.grid[1]} {state}>"


def dispatch(handle, kernel, input_buf, output_buf, params_buf, width, height):
    """Enqueue the Sobel pass and return its CompletionToken."""
    tile = KernelInterface.TILE
    if tile * tile > handle.max_work_group_size:
        raise DispatchFailed(
            f"{handle.name} allows {handle.max_work_group_size} work-items per group, "
            f"the Sobel kernel needs {tile * tile}"
        )

    groups_x, groups_y = workgroup_grid(width, height, tile)
    global_size = (groups_x * tile, groups_y * tile)
    local_size = (tile, tile)

    try:
        kernel.set_arg(KernelInterface.SLOT_INPUT, input_buf)
        kernel.set_arg(KernelInterface.SLOT_OUTPUT, output_buf)
        kernel.set_arg(KernelInterface.SLOT_PARAMS, params_buf)
        event = cl.enqueue_nd_range_kernel(handle.queue, kernel, global_size, local_size)
        handle.queue.flush()
    except cl.Error as exc:
        raise DispatchFailed(f"Could not enqueue Sobel kernel: {exc}") from exc

    logger.debug(
        "[DISPATCH] %dx%d image -> %dx%d groups of %dx%d",
        width, height, groups_x, groups_y, tile, tile,
    )
    return CompletionToken(event, (groups_x, groups_y))

"""
Sobel edge detection on an OpenCL device.

    normalize -> upload -> dispatch -> wait -> readback -> denormalize

``process_image`` opens a device for a single call. ``SobelFilter``
keeps the device and the compiled kernel between calls and runs one
invocation at a time.
"""
import asyncio
import logging
import time

from .buffers import BufferPipeline, BufferUsage
from .config import FilterConfig
from .device import acquire, open_device
from .dispatch import dispatch
from .errors import DeviceTimeout
from .image_adapter import denormalize, normalize, parameter_block, validate
from .program import build_program, load_source

logger = logging.getLogger(__name__)


async def _run(handle, image, normalized, config):
    start = time.time()
    width, height = image.width, image.height

    kernel = build_program(handle, load_source(config.kernel_path), config.build_options)
    params = parameter_block(width, height)
    nbytes = normalized.nbytes

    with BufferPipeline(handle, map_timeout=config.map_timeout) as buffers:
        input_buf = buffers.upload(normalized, BufferUsage.STORAGE_READ)
        params_buf = buffers.upload(params, BufferUsage.UNIFORM)
        output_buf = buffers.allocate_output(nbytes)

        token = dispatch(handle, kernel, input_buf, output_buf, params_buf, width, height)
        await token.wait(config.dispatch_timeout)

        result = await buffers.readback(output_buf, nbytes, wait_for=[token.event])

    output = denormalize(result, width, height)
    logger.info("[PIPELINE] %dx%d edge map on %s in %.3fs",
                width, height, handle.name, time.time() - start)
    return output


async def process_image(image, config=None):
    """Run the Sobel filter over ``image`` and return the edge map.

    Args:
        image: SourceImage (or anything with width, height, pixels)
        config: FilterConfig; defaults to ``FilterConfig.from_env()``

    Returns:
        OutputImage with the same dimensions.

    Raises:
        FilterError subclass describing the first failure. Nothing is
        retried and no device work starts for an invalid image.
    """
    config = config or FilterConfig.from_env()
    validate(image)
    normalized = normalize(image)

    with open_device(config) as handle:
        return await _run(handle, image, normalized, config)


def process_image_sync(image, config=None):
    """Blocking wrapper around ``process_image`` for code without a loop."""
    return asyncio.run(process_image(image, config))


class SobelFilter:
    """Reusable filter bound to one device.

    Invocations sharing the device are serialised; each still gets fresh
    buffers. Use as an async context manager or call ``close()``.
    """

    def __init__(self, config=None):
        self.config = config or FilterConfig.from_env()
        self.handle = None
        self._lock = asyncio.Lock()

    def open(self):
        if self.handle is None:
            self.handle = acquire(self.config)
        return self.handle

    def close(self):
        if self.handle is not None:
            self.handle.release()
            self.handle = None

    async def __aenter__(self):
        self.open()
        return self

    async def __aexit__(self, *exc_info):
        self.close()

    async def process(self, image):
        validate(image)
        normalized = normalize(image)
        async with self._lock:
            handle = self.open()
            try:
                return await _run(handle, image, normalized, self.config)
            except DeviceTimeout:
                # the queue is stuck; the next call opens a fresh device
                handle.release(drain=False)
                self.handle = None
                raise

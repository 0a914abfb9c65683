"""
Buffer Pipeline - device memory for one filter invocation.

MEMORY TRANSFER PROCESS:
------------------------
1. Upload host arrays into READ_ONLY device buffers (copied at creation)
2. Allocate a zeroed WRITE_ONLY buffer the kernel writes into
3. After the kernel: copy output -> host-mappable staging buffer
4. Map the staging buffer for reading, wait for the map, copy bytes out
5. Unmap and release everything

Every buffer created here is owned by the pipeline and released when it
closes, so nothing outlives the invocation.
"""
import asyncio
import enum
import logging

import numpy as np
import pyopencl as cl

from .errors import BufferAllocationFailed, MapFailed, MapTimeout
from .events import EventError, wait_event

logger = logging.getLogger(__name__)

mf = cl.mem_flags


class BufferUsage(enum.Enum):
    """How the kernel touches an uploaded buffer."""
    STORAGE_READ = 'storage-read'
    UNIFORM = 'uniform'


# Both are read-only from the kernel's point of view; UNIFORM buffers are
# bound to a __constant argument.
_UPLOAD_FLAGS = {
    BufferUsage.STORAGE_READ: mf.READ_ONLY | mf.COPY_HOST_PTR,
    BufferUsage.UNIFORM: mf.READ_ONLY | mf.COPY_HOST_PTR,
}


class BufferPipeline:
    """Allocates, fills and reads back device buffers on one handle."""

    def __init__(self, handle, map_timeout=None):
        self.handle = handle
        self.map_timeout = map_timeout
        self.buffers = []
        self.allocated = []  # (label, nbytes) in allocation order

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.release()

    def _allocate(self, label, size, flags, hostbuf=None):
        if size <= 0:
            raise BufferAllocationFailed(size, message=f"{label} buffer must not be empty")

        limit = self.handle.max_alloc_size
        if size > limit:
            raise BufferAllocationFailed(size, limit)

        try:
            if hostbuf is None:
                buf = cl.Buffer(self.handle.context, flags, size)
            else:
                buf = cl.Buffer(self.handle.context, flags, hostbuf=hostbuf)
        except cl.Error as exc:
            raise BufferAllocationFailed(
                size, limit, message=f"Device refused {size}-byte {label} buffer: {exc}"
            ) from exc

        self.buffers.append(buf)
        self.allocated.append((label, size))
        logger.debug("[BUFFERS] %s: %d bytes", label, size)
        return buf

    def upload(self, host_data, usage=BufferUsage.STORAGE_READ):
        """Copy ``host_data`` (any buffer-protocol object) into a new device buffer."""
        data = np.array(memoryview(host_data).cast('B'), dtype=np.uint8)
        return self._allocate(usage.value, data.nbytes, _UPLOAD_FLAGS[usage], hostbuf=data)

    def allocate_output(self, size):
        """Zero-initialised buffer the kernel writes into."""
        zeros = np.zeros(size, dtype=np.uint8)
        return self._allocate('output', size, mf.WRITE_ONLY | mf.COPY_HOST_PTR, hostbuf=zeros)

    async def readback(self, buffer, size, wait_for=None):
        """Copy ``size`` bytes of ``buffer`` back to the host.

        ``wait_for`` is a list of events the copy must follow (the compute
        pass). Returns ``bytes``.
        """
        queue = self.handle.queue
        staging = self._allocate('staging', size, mf.READ_WRITE | mf.ALLOC_HOST_PTR)

        try:
            copy_event = cl.enqueue_copy(
                queue, staging, buffer, byte_count=size, wait_for=wait_for)
            mapped, map_event = cl.enqueue_map_buffer(
                queue, staging, cl.map_flags.READ, 0, (size,), np.uint8,
                wait_for=[copy_event], is_blocking=False)
        except cl.Error as exc:
            raise MapFailed(f"Could not enqueue readback: {exc}") from exc

        queue.flush()

        try:
            await wait_event(map_event, self.map_timeout)
            data = mapped.tobytes()
        except asyncio.TimeoutError:
            raise MapTimeout(self.map_timeout) from None
        except EventError as exc:
            raise MapFailed(f"Map for read failed with status {exc.status}") from exc
        except cl.Error as exc:
            raise MapFailed(f"Map for read failed: {exc}") from exc
        finally:
            self._unmap(mapped)

        logger.debug("[BUFFERS] Read back %d bytes", size)
        return data

    def _unmap(self, mapped):
        try:
            mapped.base.release(self.handle.queue)
        except cl.Error as exc:
            logger.warning("[BUFFERS] Unmap failed: %s", exc)

    def release(self):
        while self.buffers:
            buf = self.buffers.pop()
            try:
                buf.release()
            except cl.Error as exc:
                logger.warning("[BUFFERS] Release failed: %s", exc)

"""Bridge blocking OpenCL event waits into coroutines."""
import asyncio
import logging
import threading

logger = logging.getLogger(__name__)


class EventError(Exception):
    """An OpenCL event finished with a negative execution status."""

    def __init__(self, status):
        self.status = status
        super().__init__(f"event finished with status {status}")


async def wait_event(event, timeout=None):
    """Suspend until ``event`` completes.

    ``event.wait()`` blocks the calling thread, so it runs on a daemon
    thread that resolves a future on the loop. A wait that times out is
    abandoned: the thread is never joined, so neither the caller nor
    ``asyncio.run`` shutdown waits for a hung device.

    Raises asyncio.TimeoutError past ``timeout`` and EventError when the
    event ends in an error status; pyopencl errors from the wait itself
    propagate unchanged.
    """
    loop = asyncio.get_running_loop()
    done = loop.create_future()

    def resolve(error):
        if done.done():
            return
        if error is None:
            done.set_result(None)
        else:
            done.set_exception(error)

    def wait_blocking():
        error = None
        try:
            event.wait()
        except Exception as exc:
            error = exc
        try:
            loop.call_soon_threadsafe(resolve, error)
        except RuntimeError:
            # loop closed after the caller timed out
            logger.debug("Event finished after its loop closed")

    threading.Thread(target=wait_blocking, name='cl-event-wait', daemon=True).start()
    await asyncio.wait_for(done, timeout)

    status = event.command_execution_status
    if status < 0:
        raise EventError(status)
    logger.debug("Event complete (status %s)", status)

"""
Failure taxonomy for the GPU Sobel pipeline.

Every error aborts the current invocation and none are retried. Falling
back to the CPU (``reference.cpu_process_image``) or telling the user is
up to the caller.
"""


class FilterError(Exception):
    """Base class for every failure raised by the edge detection core."""


class InvalidImage(FilterError, ValueError):
    """Declared dimensions do not match the supplied pixel bytes."""


class GpuUnavailable(FilterError):
    """No OpenCL platform or compute device is exposed by the system."""


class DeviceRequestFailed(FilterError):
    """A device exists but the context or command queue was refused."""


class ShaderCompileError(FilterError):
    """The kernel program failed to compile or link."""

    def __init__(self, message, build_log=""):
        self.build_log = build_log
        if build_log:
            message = f"{message}\n--- build log ---\n{build_log}"
        super().__init__(message)


class BufferAllocationFailed(FilterError):
    """Requested device memory exceeds what the device will hand out."""

    def __init__(self, requested, limit=None, message=None):
        self.requested = requested
        self.limit = limit

        if message is None:
            if limit is not None:
                message = (
                    f"Cannot allocate {requested} bytes on the device "
                    f"(max allocation is {limit} bytes)"
                )
            else:
                message = f"Device refused to allocate {requested} bytes"

        super().__init__(message)


class DeviceTimeout(FilterError):
    """A wait on the device queue exceeded its bound."""

    def __init__(self, operation, timeout):
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} did not complete within {timeout:g}s")


class MapTimeout(DeviceTimeout):
    """The device-to-host map never resolved."""

    def __init__(self, timeout):
        super().__init__("Map for read", timeout)


class MapFailed(FilterError):
    """The device-to-host copy or map resolved with an error status."""


class DispatchFailed(FilterError):
    """The compute pass could not be enqueued or finished with an error."""


class DispatchTimeout(DeviceTimeout):
    """The compute pass did not finish within its bound."""

    def __init__(self, timeout):
        super().__init__("Compute dispatch", timeout)


class TokenAlreadyAwaited(FilterError):
    """A completion token was awaited more than once."""

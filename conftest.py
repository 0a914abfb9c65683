"""
Shared fixtures for the gpu_sobel tests.

GPU tests need any OpenCL device; ``pip install pyopencl[pocl]`` provides
a CPU one. They are skipped when no platform is visible. The fakes below
stand in for pyopencl objects in the failure-path tests.
"""
import time

import pyopencl as cl
import pytest

from gpu_sobel.config import FilterConfig
from gpu_sobel.device import list_devices
from gpu_sobel.errors import GpuUnavailable


class FakeClError(cl.RuntimeError):
    """A pyopencl error we can raise without a real runtime."""

    def __init__(self, msg="simulated OpenCL failure"):
        Exception.__init__(self, msg)
        self.msg = msg

    def __str__(self):
        return self.msg


class FakeEvent:
    def __init__(self, status=0, delay=0.0):
        self.command_execution_status = status
        self.delay = delay
        self.waits = 0

    def wait(self):
        self.waits += 1
        if self.delay:
            time.sleep(self.delay)


class FakeQueue:
    def __init__(self):
        self.flushes = 0
        self.finished = 0

    def flush(self):
        self.flushes += 1

    def finish(self):
        self.finished += 1


class FakeMemoryMap:
    def __init__(self):
        self.released = False

    def release(self, queue=None, wait_for=None):
        self.released = True


class FakeMapped:
    def __init__(self, data):
        self.data = data
        self.base = FakeMemoryMap()

    def tobytes(self):
        return self.data


class FakeBuffer:
    def __init__(self, context, flags, size=0, hostbuf=None):
        self.flags = flags
        self.size = size if hostbuf is None else hostbuf.nbytes
        self.hostbuf = hostbuf
        self.released = False

    def release(self):
        self.released = True


class FakePlatform:
    def __init__(self, name, devices):
        self.name = name
        self.devices = devices

    def get_devices(self, device_type=cl.device_type.ALL):
        return [d for d in self.devices if d.type & device_type]


class FakeDevice:
    def __init__(self, name, type=cl.device_type.GPU, max_compute_units=8,
                 max_mem_alloc_size=1 << 30, max_work_group_size=1024):
        self.name = name
        self.type = type
        self.max_compute_units = max_compute_units
        self.max_mem_alloc_size = max_mem_alloc_size
        self.max_work_group_size = max_work_group_size


class FakeHandle:
    def __init__(self, max_alloc_size=1 << 30, max_work_group_size=1024):
        self.context = object()
        self.device = FakeDevice('Fake Device', max_mem_alloc_size=max_alloc_size,
                                 max_work_group_size=max_work_group_size)
        self.queue = FakeQueue()
        self.max_alloc_size = max_alloc_size
        self.max_work_group_size = max_work_group_size
        self.name = 'Fake Device'
        self.programs = {}


@pytest.fixture
def fake_handle():
    return FakeHandle()


@pytest.fixture
def fake_buffers(monkeypatch):
    """Replace cl.Buffer; returns the list of buffers created."""
    created = []

    def make(*args, **kwargs):
        buf = FakeBuffer(*args, **kwargs)
        created.append(buf)
        return buf

    monkeypatch.setattr(cl, 'Buffer', make)
    return created


@pytest.fixture(scope='session')
def opencl_config():
    """Config for the real device tests; skips when there is no device."""
    config = FilterConfig.from_env()
    try:
        list_devices(config)
    except GpuUnavailable as exc:
        pytest.skip(f"No OpenCL device: {exc}")
    return config

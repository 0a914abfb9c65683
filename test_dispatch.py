"""
Kernel Dispatcher: binding slots, grid sizing and submission.
"""
import pyopencl as cl
import pytest

from conftest import FakeEvent, FakeHandle
from gpu_sobel.dispatch import CompletionToken, dispatch, workgroup_grid
from gpu_sobel.errors import DispatchFailed
from gpu_sobel.program import KernelInterface


class RecordingKernel:
    def __init__(self):
        self.args = {}

    def set_arg(self, index, value):
        self.args[index] = value


@pytest.fixture
def enqueued(monkeypatch):
    calls = []

    def enqueue_nd_range_kernel(queue, kernel, global_size, local_size):
        calls.append((global_size, local_size))
        return FakeEvent()

    monkeypatch.setattr(cl, 'enqueue_nd_range_kernel', enqueue_nd_range_kernel)
    return calls


@pytest.mark.parametrize("width, height, grid", [
    (1024, 1024, (64, 64)),
    (16, 16, (1, 1)),
    (17, 16, (2, 1)),
    (1, 1, (1, 1)),
    (5, 5, (1, 1)),
    (640, 481, (40, 31)),
])
def test_workgroup_grid(width, height, grid):
    assert workgroup_grid(width, height) == grid


def test_interface_constants():
    assert KernelInterface.TILE == 16
    assert (KernelInterface.SLOT_INPUT, KernelInterface.SLOT_OUTPUT, KernelInterface.SLOT_PARAMS) == (0, 1, 2)


def test_dispatch_binds_fixed_slots(enqueued):
    handle = FakeHandle()
    kernel = RecordingKernel()

    token = dispatch(handle, kernel, 'input', 'output', 'params', 33, 17)

    assert kernel.args == {0: 'input', 1: 'output', 2: 'params'}
    assert enqueued == [((48, 32), (16, 16))]
    assert handle.queue.flushes == 1
    assert isinstance(token, CompletionToken)
    assert token.grid == (3, 2)
    assert not token.awaited


def test_dispatch_rejects_small_work_groups(enqueued):
    handle = FakeHandle(max_work_group_size=128)
    with pytest.raises(DispatchFailed, match='128'):
        dispatch(handle, RecordingKernel(), 'input', 'output', 'params', 8, 8)
    assert enqueued == []

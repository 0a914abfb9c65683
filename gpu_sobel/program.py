"""
Kernel Program - load, compile and cache the Sobel OpenCL kernel.

The host side and ``kernels/sobel.cl`` agree on one versioned interface
(``KernelInterface``): tile size and argument slots. The version is
passed to the compiler and the kernel refuses to build against any
other value, so the two halves cannot drift apart silently.
"""
import logging
from functools import lru_cache
from importlib import resources

import pyopencl as cl

from .errors import ShaderCompileError

logger = logging.getLogger(__name__)


class KernelInterface:
    """Fixed contract between the dispatcher and the kernel source."""
    VERSION = 1
    TILE = 16
    SLOT_INPUT = 0
    SLOT_OUTPUT = 1
    SLOT_PARAMS = 2
    ENTRY_POINT = 'sobel'

    @classmethod
    def build_options(cls):
        return [
            f'-DSOBEL_INTERFACE_VERSION={cls.VERSION}',
            f'-DSOBEL_TILE={cls.TILE}',
        ]


@lru_cache(maxsize=None)
def _packaged_source():
    return resources.files(__package__).joinpath('kernels').joinpath('sobel.cl').read_text(encoding='utf-8')


def load_source(path=None):
    """Return the kernel source text.

    The packaged ``sobel.cl`` is read once per process; an explicit path
    is read on every call so an edited kernel is picked up.
    """
    if path is None:
        return _packaged_source()
    with open(path, encoding='utf-8') as f:
        return f.read()


def _build_log(program, device, exc):
    try:
        log = program.get_build_info(device, cl.program_build_info.LOG)
    except cl.Error:
        log = ''
    return (log or '').strip() or str(exc)


def build_program(handle, source, extra_options=()):
    """Compile ``source`` for the handle's device and return the kernel.

    Results are cached on the handle keyed by source and options, so a
    long-lived ``SobelFilter`` compiles once.
    """
    options = KernelInterface.build_options() + list(extra_options)
    key = (source, tuple(options))
    kernel = handle.programs.get(key)
    if kernel is not None:
        return kernel

    try:
        program = cl.Program(handle.context, source)
    except cl.Error as exc:
        raise ShaderCompileError(f"Could not create program: {exc}") from exc

    try:
        program.build(options=options, devices=[handle.device])
    except cl.Error as exc:
        raise ShaderCompileError(
            f"Sobel kernel failed to build on {handle.name}",
            build_log=_build_log(program, handle.device, exc),
        ) from exc

    try:
        kernel = cl.Kernel(program, KernelInterface.ENTRY_POINT)
    except cl.Error as exc:
        raise ShaderCompileError(
            f"Kernel entry point {KernelInterface.ENTRY_POINT!r} not found: {exc}"
        ) from exc

    _check_work_group(kernel, handle.device)

    handle.programs[key] = kernel
    logger.info("[PROGRAM] ✓ Sobel kernel compiled for %s", handle.name)
    return kernel


def _check_work_group(kernel, device):
    declared = kernel.get_work_group_info(
        cl.kernel_work_group_info.COMPILE_WORK_GROUP_SIZE, device)
    expected = [KernelInterface.TILE, KernelInterface.TILE, 1]
    if list(declared) != expected:
        raise ShaderCompileError(
            f"Kernel declares work-group size {list(declared)}, "
            f"interface v{KernelInterface.VERSION} requires {expected}"
        )

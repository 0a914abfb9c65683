#!/usr/bin/env python3
"""
Diagnostics for the OpenCL Sobel filter.

Usage:
    python -m gpu_sobel devices
    python -m gpu_sobel selftest [--size 256x192] [--plot sobel_selftest.png]

``devices`` lists every platform/device with the score used for
auto-selection. ``selftest`` runs synthetic images through the selected
device and compares the result with the scipy reference.
"""
import argparse
import asyncio
import sys
import time

import numpy as np

from .config import FilterConfig
from .device import list_devices
from .errors import FilterError
from .pipeline import SobelFilter
from .reference import cpu_process_image
from .synthetic import disc_pattern, flat_image, step_image


def parse_size(text):
    try:
        width, height = (int(v) for v in text.lower().split('x'))
    except ValueError:
        raise argparse.ArgumentTypeError(f"size must look like 256x192, got {text!r}") from None
    if width <= 0 or height <= 0:
        raise argparse.ArgumentTypeError("size must be positive")
    return width, height


def cmd_devices(config):
    print("=" * 70)
    print("OPENCL DEVICES")
    print("=" * 70)
    candidates = list_devices(config)
    for i, (platform, device, score) in enumerate(candidates):
        marker = "✓" if i == 0 else " "
        print(f" {marker} [{i}] {platform.name.strip()} - {device.name.strip()}")
        print(f"       Score: {score}  |  Compute Units: {device.max_compute_units}"
              f"  |  Max Work Group Size: {device.max_work_group_size}")
        print(f"       Global Memory: {device.global_mem_size / 1024**3:.2f} GB"
              f"  |  Max Allocation: {device.max_mem_alloc_size / 1024**2:.0f} MB")
    return 0


async def run_selftest(config, size):
    failures = 0

    async with SobelFilter(config) as sobel:
        print(f"\n✓ Device: {sobel.handle.name}")

        # Step edge
        out = (await sobel.process(step_image())).to_array()[..., 0]
        uniform_zero = not out[:, [0, 3, 4]].any()
        edge_positive = bool((out[:, [1, 2]] > 0).all())
        ok = uniform_zero and edge_positive
        failures += not ok
        print(f"  {'✓' if ok else '✗'} 5x5 step edge: row 2 = {out[2].tolist()}")

        # Flat images
        flat_ok = True
        for c in (0, 1, 127, 254, 255):
            out = await sobel.process(flat_image(c))
            rgb = out.to_array()
            flat_ok &= not rgb[..., :3].any() and bool((rgb[..., 3] == 255).all())
        failures += not flat_ok
        print(f"  {'✓' if flat_ok else '✗'} Flat images produce no gradient")

        # Reference comparison
        width, height = size
        image = disc_pattern(width, height)
        start = time.time()
        gpu = (await sobel.process(image)).to_array()
        gpu_time = time.time() - start
        start = time.time()
        cpu = cpu_process_image(image).to_array()
        cpu_time = time.time() - start
        max_diff = int(np.abs(gpu.astype(np.int16) - cpu.astype(np.int16)).max())
        ok = max_diff <= 1
        failures += not ok
        print(f"  {'✓' if ok else '✗'} {width}x{height} matches CPU reference "
              f"(max diff {max_diff})")
        print(f"      GPU: {gpu_time * 1000:.1f} ms  |  CPU: {cpu_time * 1000:.1f} ms")

        results = {'input': image, 'gpu': gpu, 'cpu': cpu}

    return failures, results


def save_plot(path, results):
    import matplotlib
    matplotlib.use('Agg')
    import matplotlib.pyplot as plt

    image = results['input']
    source = np.frombuffer(image.pixels, dtype=np.uint8).reshape(image.height, image.width, 4)
    diff = np.abs(results['gpu'][..., 0].astype(np.int16) - results['cpu'][..., 0].astype(np.int16))

    fig, axes = plt.subplots(1, 4, figsize=(16, 4.5), dpi=150)
    panels = [
        (source[..., 0], 'Input (red channel)', 255),
        (results['gpu'][..., 0], 'OpenCL Sobel', 255),
        (results['cpu'][..., 0], 'CPU reference', 255),
        (diff, f'|GPU - CPU| (max {diff.max()})', max(1, int(diff.max()))),
    ]
    for ax, (data, title, vmax) in zip(axes, panels):
        ax.imshow(data, cmap='gray', vmin=0, vmax=vmax)
        ax.set_title(title, fontsize=12, fontweight='bold')
        ax.axis('off')

    plt.tight_layout()
    plt.savefig(path, bbox_inches='tight')
    plt.close()
    print(f"\n✓ Plot saved to '{path}'")


def cmd_selftest(config, size, plot):
    print("=" * 70)
    print("OPENCL SOBEL SELF-TEST")
    print("=" * 70)

    failures, results = asyncio.run(run_selftest(config, size))
    if plot:
        save_plot(plot, results)

    print("\n" + "=" * 70)
    print("ALL CHECKS PASSED" if not failures else f"{failures} CHECK(S) FAILED")
    print("=" * 70)
    return 1 if failures else 0


def main(argv=None):
    parser = argparse.ArgumentParser(prog='gpu_sobel', description=__doc__.strip().splitlines()[0])
    sub = parser.add_subparsers(dest='command', required=True)
    sub.add_parser('devices', help='list OpenCL platforms and devices')
    selftest = sub.add_parser('selftest', help='run synthetic images through the device')
    selftest.add_argument('--size', type=parse_size, default=(256, 192))
    selftest.add_argument('--plot', metavar='PATH', help='save a comparison figure')
    args = parser.parse_args(argv)

    try:
        config = FilterConfig.from_env()
        if args.command == 'devices':
            return cmd_devices(config)
        return cmd_selftest(config, args.size, args.plot)
    except (FilterError, ValueError) as exc:
        print(f"✗ {type(exc).__name__}: {exc}")
        return 1


if __name__ == '__main__':
    sys.exit(main())

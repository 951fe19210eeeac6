"""
Frame rendering and the ordered parallel frame stream.

A frame is a pure function of (params, frame index): every pixel takes its
Hilbert rank, adds the frame offset and goes through the color function. No
frame depends on another, so frames are rendered on a process pool and handed
back in index order.
"""

from concurrent.futures import ProcessPoolExecutor

import numpy as np

from .colors import get_color_function
from .curve import rank_grid

# -----------------------------
# Single frame
# -----------------------------

def frame_offset(index: int, num_pixels: int, frames: int) -> int:
    # Truncating: the step between frames is uneven when frames does not divide num_pixels.
    return index * num_pixels // frames


def render_frame(params, color, index, ranks=None) -> np.ndarray:
    """
    Return frame `index` as a uint8 array of shape (size, size, 4), indexed [y, x].
    `ranks` is the rank_grid for params.order; pass it in to avoid recomputing.
    """
    if ranks is None:
        ranks = rank_grid(params.order)
    offset = frame_offset(index, params.num_pixels, params.frames)
    rotated = (ranks + offset) % params.num_pixels
    return color(rotated, params.num_pixels)

# -----------------------------
# Worker state
# -----------------------------

# Filled once per worker process by init_worker; read only afterwards.
_worker = {}


def init_worker(params):
    _worker["params"] = params
    _worker["color"] = get_color_function(params.function)
    _worker["ranks"] = rank_grid(params.order)


def render_worker_frame(index):
    return render_frame(_worker["params"], _worker["color"], index, _worker["ranks"])

# -----------------------------
# Ordered frame stream
# -----------------------------

def _report(results, params):
    every = max(1, params.framerate)
    for i, result in enumerate(results):
        yield result
        done = i + 1
        if done % every == 0 or done == params.frames:
            print(f"{done}/{params.frames} frames", flush=True)


def run_frames(params, task=render_worker_frame, jobs=None):
    """
    Yield task(index) for index 0 .. params.frames - 1, in index order.

    task runs in a worker with init_worker(params) already applied, so it can
    call render_worker_frame. jobs=1 runs everything in this process; any other
    value (None meaning one per CPU) uses a ProcessPoolExecutor. The first
    exception raised by a task propagates out of the iteration.
    """
    if jobs is None:
        jobs = params.jobs
    indices = range(params.frames)

    if jobs == 1:
        init_worker(params)
        yield from _report(map(task, indices), params)
        return

    with ProcessPoolExecutor(max_workers=jobs, initializer=init_worker, initargs=(params,)) as pool:
        yield from _report(pool.map(task, indices), params)


def generate_frames(params, jobs=None):
    return run_frames(params, render_worker_frame, jobs)

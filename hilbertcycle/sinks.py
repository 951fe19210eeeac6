"""
Output sinks, picked by the destination file extension.

- .gif          animated GIF, assembled in memory
- .webp         animated lossy WebP, assembled in memory
- .webm / .mp4  numbered PNGs in a scratch directory, muxed by ffmpeg
- no extension  numbered PNGs in a directory named like the destination
"""

import functools
import io
import os
import shutil
import subprocess
import tempfile
from pathlib import Path

from PIL import Image

from .errors import ConfigError, EncoderError, MuxError, SinkError
from .frames import generate_frames, render_worker_frame, run_frames

# Scratch directory for frames on their way to ffmpeg
TEMP_FRAMES_DIR = "_frames_out"

# Extension -> ffmpeg video codec arguments
MUX_CODECS = {
    ".webm": ["-c:v", "libvpx-vp9"],
    ".mp4": ["-c:v", "libx264", "-pix_fmt", "yuv420p"],
}


def resolve_format(filename) -> str:
    ext = Path(filename).suffix.lower()
    if ext == "":
        return "frames"
    if ext == ".gif":
        return "gif"
    if ext == ".webp":
        return "webp"
    if ext in MUX_CODECS:
        return "mux"
    raise ConfigError(f"unknown format '{ext.lstrip('.')}'")


def frame_filename(index: int) -> str:
    return f"frame_{index:05}.png"


def frame_durations(framerate, frames):
    """
    Per-frame durations in ms. Timestamps accumulate 1000/framerate per frame
    and are rounded when a frame is placed, so durations may alternate (33, 34, 33 ...)
    while the total stays on time.
    """
    durations = []
    timestamp = 0.0
    for _ in range(frames):
        start = round(timestamp)
        timestamp += 1000.0 / framerate
        durations.append(round(timestamp) - start)
    return durations


def write_atomic(path, data: bytes):
    """Write data next to path, then rename over it, so path is either old or complete."""
    directory = os.path.dirname(os.path.abspath(path))
    try:
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".tmp-", suffix=Path(path).suffix)
    except OSError as e:
        raise SinkError("Failed to open file") from e
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except OSError as e:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise SinkError(f"Failed to write {path}") from e

# -----------------------------
# Animated containers
# -----------------------------

def _collect_images(params, jobs):
    return [Image.fromarray(frame) for frame in generate_frames(params, jobs)]


def write_gif(params, jobs=None):
    """
    Pillow folds a frame identical to the one before it into that frame,
    adding up the durations, so repeated offsets give fewer frames on disk
    with the same total play time.
    """
    images = _collect_images(params, jobs)
    delay = round(1000 / params.framerate)

    extra = {}
    # No loop extension plays once; loop=N repeats N more times.
    if params.loops > 1:
        extra["loop"] = params.loops - 1

    buf = io.BytesIO()
    try:
        images[0].save(
            buf,
            format="GIF",
            save_all=True,
            append_images=images[1:],
            duration=[delay] * len(images),
            **extra,
        )
    except (OSError, ValueError) as e:
        raise EncoderError("Failed to write frames") from e
    write_atomic(params.filename, buf.getvalue())


def write_webp(params, jobs=None):
    images = _collect_images(params, jobs)

    buf = io.BytesIO()
    try:
        images[0].save(
            buf,
            format="WEBP",
            save_all=True,
            append_images=images[1:],
            duration=frame_durations(params.framerate, len(images)),
            loop=0,
            lossless=False,
            minimize_size=True,
        )
    except (OSError, ValueError) as e:
        raise EncoderError("Failed to add frame to webp") from e
    write_atomic(params.filename, buf.getvalue())

# -----------------------------
# Numbered frames
# -----------------------------

def save_worker_frame(index, out_dir):
    path = os.path.join(out_dir, frame_filename(index))
    image = Image.fromarray(render_worker_frame(index))
    try:
        image.save(path, format="PNG")
    except OSError as e:
        raise SinkError(f"Failed to save frame {index}") from e
    return path


def write_frames(params, out_dir=None, jobs=None):
    """Render every frame straight to out_dir/frame_NNNNN.png from the workers."""
    if out_dir is None:
        out_dir = params.filename

    if os.path.isdir(out_dir):
        try:
            shutil.rmtree(out_dir)
        except OSError as e:
            raise SinkError("Failed to remove existing output dir") from e
    try:
        os.makedirs(out_dir)
    except OSError as e:
        raise SinkError("Failed to create output dir") from e

    task = functools.partial(save_worker_frame, out_dir=out_dir)
    return list(run_frames(params, task, jobs))

# -----------------------------
# ffmpeg
# -----------------------------

def ffmpeg_command(params, frames_dir):
    cmd = [
        params.ffmpeg, "-y",
        "-framerate", str(params.framerate),
        "-stream_loop", str(params.loops - 1),
        "-pattern_type", "glob",
        "-i", os.path.join(frames_dir, "*.png"),
    ]
    cmd += MUX_CODECS[Path(params.filename).suffix.lower()]
    if params.bitrate:
        cmd += ["-b:v", params.bitrate]
    cmd += [str(params.filename)]
    return cmd


def run_cmd(cmd):
    print("\n[RUNNING]")
    print(" ".join(cmd), flush=True)
    try:
        result = subprocess.run(cmd)
    except OSError as e:
        raise MuxError(f"Failed to run {cmd[0]}") from e
    if result.returncode != 0:
        raise MuxError(f"{cmd[0]} failed with exit status {result.returncode}")


def mux_frames(params, frames_dir):
    run_cmd(ffmpeg_command(params, frames_dir))

# -----------------------------
# Dispatch
# -----------------------------

def write_output(params, jobs=None):
    fmt = resolve_format(params.filename)
    if fmt == "gif":
        write_gif(params, jobs)
    elif fmt == "webp":
        write_webp(params, jobs)
    elif fmt == "frames":
        write_frames(params, jobs=jobs)
    else:
        write_frames(params, TEMP_FRAMES_DIR, jobs)
        mux_frames(params, TEMP_FRAMES_DIR)
        try:
            shutil.rmtree(TEMP_FRAMES_DIR)
        except OSError as e:
            raise SinkError("Failed to remove temporary frames dir") from e

import argparse
import sys

from .colors import COLOR_FUNCTIONS
from .errors import HilbertCycleError
from .params import Params
from .sinks import resolve_format, write_output

# -----------------------------
# CLI
# -----------------------------

def parse_args(argv=None):
    ap = argparse.ArgumentParser(
        prog="hilbert-cycle",
        description="Color cycling animation along a Hilbert curve.",
    )
    ap.add_argument("--order", type=int, default=9,
                    help="Hilbert curve order, the image is 2^order pixels wide (default 9)")
    ap.add_argument("-f", "--function", type=str, default="oklab_hue",
                    choices=sorted(COLOR_FUNCTIONS),
                    help="Color function (default oklab_hue)")
    ap.add_argument("-n", "--frames", type=int, default=256)
    ap.add_argument("-r", "--framerate", type=int, default=30,
                    help="Frames per second (default 30)")
    ap.add_argument("-l", "--loops", type=int, default=1,
                    help="How many times the animation plays (.gif, .webm, .mp4; default 1)")
    ap.add_argument("-b", "--bitrate", type=str, default=None,
                    help="Video bitrate passed to ffmpeg as -b:v, e.g. 4M")
    ap.add_argument("-j", "--jobs", type=int, default=None,
                    help="Worker processes (default: one per CPU)")
    ap.add_argument("--ffmpeg", type=str, default="ffmpeg",
                    help="ffmpeg executable used for .webm/.mp4 output")
    ap.add_argument("filename", nargs="?", default="out.webp",
                    help="Output: .gif, .webp, .webm, .mp4, or a directory name without extension "
                         "for numbered PNG frames (default out.webp)")
    return ap.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        # Everything is validated before the first file is touched.
        params = Params.from_args(args)
        fmt = resolve_format(params.filename)

        print(f"order {params.order} size {params.image_size}x{params.image_size} "
              f"frames {params.frames} function {params.function} format {fmt}", flush=True)
        write_output(params)
    except HilbertCycleError as e:
        message = f"Error: {e}"
        # Errors from pool workers carry a multi-line remote traceback as __cause__.
        if isinstance(e.__cause__, OSError):
            message += f": {e.__cause__}"
        print(message, file=sys.stderr)
        return 1

    print(f"Done. Wrote {params.frames} frames to {params.filename}")
    return 0

from dataclasses import dataclass, field
from typing import Optional

from .colors import get_color_function
from .errors import ConfigError

# Order 16 is already a 65536x65536 frame, anything above does not fit in memory.
MAX_ORDER = 16


@dataclass(frozen=True)
class Params:
    """
    Validated run configuration. image_size and num_pixels are derived from
    order once, here, and every other module reads them from this object.
    """
    order: int = 9
    frames: int = 256
    framerate: int = 30
    loops: int = 1
    bitrate: Optional[str] = None
    filename: str = "out.webp"
    function: str = "oklab_hue"
    jobs: Optional[int] = None
    ffmpeg: str = "ffmpeg"
    image_size: int = field(init=False)
    num_pixels: int = field(init=False)

    def __post_init__(self):
        if not 0 <= self.order <= MAX_ORDER:
            raise ConfigError(f"order has to be in the range of 0-{MAX_ORDER}, got {self.order}")
        if self.frames < 1:
            raise ConfigError(f"frames has to be at least 1, got {self.frames}")
        if self.framerate < 1:
            raise ConfigError(f"framerate has to be at least 1, got {self.framerate}")
        if self.loops < 1:
            raise ConfigError(f"loops has to be at least 1, got {self.loops}")
        if self.jobs is not None and self.jobs < 1:
            raise ConfigError(f"jobs has to be at least 1, got {self.jobs}")
        get_color_function(self.function)

        image_size = 2 ** self.order
        object.__setattr__(self, "image_size", image_size)
        object.__setattr__(self, "num_pixels", image_size ** 2)

    @classmethod
    def from_args(cls, args):
        return cls(
            order=args.order,
            frames=args.frames,
            framerate=args.framerate,
            loops=args.loops,
            bitrate=args.bitrate,
            filename=args.filename,
            function=args.function,
            jobs=args.jobs,
            ffmpeg=args.ffmpeg,
        )

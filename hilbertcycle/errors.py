class HilbertCycleError(Exception):
    pass


class ConfigError(HilbertCycleError):
    """Bad options: unknown color function, unknown output format, out of range numbers."""


class SinkError(HilbertCycleError):
    """Creating, opening or removing an output file or directory failed."""


class EncoderError(HilbertCycleError):
    """An animated container encoder could not build the output."""


class MuxError(HilbertCycleError):
    """The external ffmpeg process could not be started or exited non-zero."""

"""
Hilbert curve color cycling animations.

Every pixel of a 2^order x 2^order grid gets its rank along a Hilbert curve,
every frame rotates those ranks by a fixed offset and a color function turns
the rotated rank into an RGBA color. Frames are rendered in parallel and
written as GIF, WebP, numbered PNGs or muxed into a video with ffmpeg.
"""

__version__ = "0.1.0"

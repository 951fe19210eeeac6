import pytest

from hilbertcycle.params import Params


@pytest.fixture()
def small_params(tmp_path):
    """4x4 grid, 4 frames, rendered in-process."""
    def make(filename="out.gif", **kwargs):
        kwargs.setdefault("order", 2)
        kwargs.setdefault("frames", 4)
        kwargs.setdefault("framerate", 25)
        kwargs.setdefault("function", "square_linsrgb_channels")
        kwargs.setdefault("jobs", 1)
        return Params(filename=str(tmp_path / filename), **kwargs)
    return make

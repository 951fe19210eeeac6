import os
import subprocess

import numpy as np
import pytest
from PIL import Image

from hilbertcycle import sinks
from hilbertcycle.colors import get_color_function
from hilbertcycle.errors import ConfigError, MuxError, SinkError
from hilbertcycle.frames import init_worker, render_frame
from hilbertcycle.sinks import (
    TEMP_FRAMES_DIR,
    ffmpeg_command,
    frame_durations,
    resolve_format,
    save_worker_frame,
    write_frames,
    write_gif,
    write_output,
    write_webp,
)


class TestResolveFormat:
    @pytest.mark.parametrize("filename, fmt", [
        ("out.gif", "gif"),
        ("OUT.GIF", "gif"),
        ("out.webp", "webp"),
        ("out.webm", "mux"),
        ("clip.mp4", "mux"),
        ("frames", "frames"),
        ("some/dir/frames", "frames"),
    ])
    def test_known(self, filename, fmt):
        assert resolve_format(filename) == fmt

    def test_unknown(self):
        with pytest.raises(ConfigError, match="unknown format 'bmp'"):
            resolve_format("out.bmp")


class TestDurations:
    def test_whole_milliseconds(self):
        assert frame_durations(25, 4) == [40, 40, 40, 40]

    def test_rounded_timestamps(self):
        durations = frame_durations(30, 30)
        assert set(durations) <= {33, 34}
        assert sum(durations) == 1000


class TestGif:
    def test_four_frames(self, small_params):
        params = small_params("out.gif")
        write_gif(params)

        with Image.open(params.filename) as im:
            assert im.format == "GIF"
            assert im.n_frames == 4
            assert im.size == (4, 4)
            for i in range(im.n_frames):
                im.seek(i)
                assert im.info["duration"] == round(1000 / params.framerate)

    def test_no_temp_files_left(self, small_params, tmp_path):
        write_gif(small_params("out.gif"))
        assert sorted(os.listdir(tmp_path)) == ["out.gif"]

    def test_repeated_offsets_keep_play_time(self, small_params):
        # 4 pixels over 8 frames: every offset appears twice in a row
        params = small_params("out.gif", order=1, frames=8)
        write_gif(params)

        with Image.open(params.filename) as im:
            total = 0
            for i in range(im.n_frames):
                im.seek(i)
                total += im.info["duration"]
            assert im.n_frames <= params.frames
        expected = params.frames * round(1000 / params.framerate)
        assert abs(total - expected) <= 10 * params.frames

    def test_plays_once_by_default(self, small_params):
        params = small_params("out.gif")
        write_gif(params)
        with Image.open(params.filename) as im:
            assert "loop" not in im.info

    def test_loops(self, small_params):
        params = small_params("out.gif", loops=3)
        write_gif(params)
        with Image.open(params.filename) as im:
            assert im.info["loop"] == 2

    def test_missing_directory(self, small_params):
        params = small_params("missing/out.gif")
        with pytest.raises(SinkError):
            write_gif(params)


class TestWebp:
    def test_animation(self, small_params):
        params = small_params("out.webp", order=3, frames=5, function="oklab_hue")
        write_webp(params)

        with Image.open(params.filename) as im:
            assert im.format == "WEBP"
            assert im.n_frames == 5
            assert im.size == (8, 8)

    def test_frame_durations(self, small_params):
        params = small_params("out.webp", order=3, frames=6, framerate=30, function="oklab_hue")
        write_webp(params)

        durations = []
        with Image.open(params.filename) as im:
            for i in range(im.n_frames):
                im.seek(i)
                im.load()
                durations.append(im.info["duration"])
        assert durations == frame_durations(30, 6)
        assert durations == [33, 34, 33, 33, 34, 33]


class TestFrameDirectory:
    def test_numbered_pngs(self, small_params, tmp_path):
        params = small_params("frames", order=1, frames=3)
        write_frames(params)

        out_dir = tmp_path / "frames"
        assert sorted(os.listdir(out_dir)) == ["frame_00000.png", "frame_00001.png", "frame_00002.png"]
        for name in os.listdir(out_dir):
            with Image.open(out_dir / name) as im:
                assert im.format == "PNG"
                assert im.size == (2, 2)

    def test_replaces_existing_directory(self, small_params, tmp_path):
        out_dir = tmp_path / "frames"
        out_dir.mkdir()
        (out_dir / "frame_00099.png").write_bytes(b"stale")
        (out_dir / "notes.txt").write_text("old run")

        write_frames(small_params("frames", order=1, frames=2))
        assert sorted(os.listdir(out_dir)) == ["frame_00000.png", "frame_00001.png"]

    def test_png_matches_rendered_frame(self, small_params, tmp_path):
        params = small_params("frames", order=2, frames=4)
        write_frames(params)
        expected = render_frame(params, get_color_function(params.function), 2)
        with Image.open(tmp_path / "frames" / "frame_00002.png") as im:
            np.testing.assert_array_equal(np.asarray(im.convert("RGBA")), expected)

    def test_parallel_workers(self, small_params, tmp_path):
        params = small_params("frames", order=2, frames=6, jobs=2)
        write_frames(params)
        assert len(os.listdir(tmp_path / "frames")) == 6

    def test_save_error_message(self, small_params, tmp_path):
        init_worker(small_params("frames", order=1, frames=2))
        with pytest.raises(SinkError) as exc:
            save_worker_frame(0, str(tmp_path / "missing"))
        assert str(exc.value) == "Failed to save frame 0"
        assert isinstance(exc.value.__cause__, OSError)

    def test_target_is_a_file(self, small_params, tmp_path):
        (tmp_path / "frames").write_text("not a directory")
        with pytest.raises(SinkError):
            write_frames(small_params("frames", order=1, frames=2))


class TestMux:
    def test_command(self, small_params):
        params = small_params("out.webm", frames=4, framerate=24, loops=3, bitrate="4M")
        cmd = ffmpeg_command(params, "_frames_out")
        assert cmd == [
            "ffmpeg", "-y",
            "-framerate", "24",
            "-stream_loop", "2",
            "-pattern_type", "glob",
            "-i", os.path.join("_frames_out", "*.png"),
            "-c:v", "libvpx-vp9",
            "-b:v", "4M",
            params.filename,
        ]

    def test_command_without_bitrate(self, small_params):
        cmd = ffmpeg_command(small_params("clip.mp4"), "frames_dir")
        assert "-b:v" not in cmd
        assert cmd[cmd.index("-c:v") + 1] == "libx264"

    def test_write_output_runs_ffmpeg_after_frames(self, small_params, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        params = small_params("out.webm", order=1, frames=3)
        seen = {}

        def fake_run(cmd):
            seen["cmd"] = cmd
            seen["frames"] = sorted(os.listdir(TEMP_FRAMES_DIR))
            return subprocess.CompletedProcess(cmd, 0)

        monkeypatch.setattr(sinks.subprocess, "run", fake_run)
        write_output(params)

        assert seen["cmd"][-1] == params.filename
        assert seen["frames"] == ["frame_00000.png", "frame_00001.png", "frame_00002.png"]
        assert not os.path.exists(TEMP_FRAMES_DIR)

    def test_nonzero_exit(self, small_params, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr(sinks.subprocess, "run", lambda cmd: subprocess.CompletedProcess(cmd, 1))
        with pytest.raises(MuxError, match="exit status 1"):
            write_output(small_params("out.webm", order=1, frames=2))

    def test_missing_ffmpeg(self, small_params, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        params = small_params("out.webm", order=1, frames=2,
                              ffmpeg=str(tmp_path / "no-such-ffmpeg"))
        with pytest.raises(MuxError, match="Failed to run"):
            write_output(params)

"""Runs the remux pipeline against real ffmpeg/ffprobe binaries.

Skipped when either tool is not on PATH.
"""

import shutil

import pytest

from getcoub.config import PipelineConfig
from getcoub.media_probe import VIDEO, probe_file
from getcoub.process_runner import ToolRunner
from getcoub.remux import PipelineState, RemuxPipeline

FFMPEG = shutil.which("ffmpeg")
FFPROBE = shutil.which("ffprobe")

pytestmark = pytest.mark.skipif(
    not (FFMPEG and FFPROBE), reason="ffmpeg and ffprobe are required"
)


def make_media(run_dir):
    """Half a second of h264 video and 2.2 seconds of AAC audio."""
    run_dir.mkdir(parents=True)
    video = run_dir / "clip_muted.mp4"
    audio = run_dir / "clip_audio.m4a"
    runner = ToolRunner()
    video_result = runner.run(
        [
            FFMPEG,
            "-y",
            "-f",
            "lavfi",
            "-i",
            "testsrc=duration=0.5:size=160x120:rate=25",
            "-c:v",
            "libx264",
            "-pix_fmt",
            "yuv420p",
            str(video),
        ]
    )
    audio_result = runner.run(
        [
            FFMPEG,
            "-y",
            "-f",
            "lavfi",
            "-i",
            "sine=frequency=440:duration=2.2",
            "-c:a",
            "aac",
            str(audio),
        ]
    )
    if not (video_result.success and audio_result.success):
        pytest.skip("ffmpeg build cannot generate h264/aac test media")
    return video, audio


@pytest.mark.asyncio
async def test_output_spans_looped_video_under_audio(tmp_path, monkeypatch):
    # Relative working directory, as shipped in the default settings
    monkeypatch.chdir(tmp_path)
    config = PipelineConfig(
        probe_tool_path=FFPROBE,
        transcode_tool_path=FFMPEG,
        working_directory="scratch",
        output_directory=str(tmp_path / "out"),
    )
    video, audio = make_media(config.run_directory("dl5px"))

    run = await RemuxPipeline(config).run("dl5px", video, audio)

    assert run.state is PipelineState.COMPLETED, run.error
    assert run.loops == 4
    assert run.output_path.exists()
    expected = min(run.loops * run.video.duration, run.audio.duration)
    output = probe_file(str(run.output_path), VIDEO, ffprobe_path=FFPROBE)
    assert output.duration == pytest.approx(expected, abs=0.35)
    assert not config.run_directory("dl5px").exists()

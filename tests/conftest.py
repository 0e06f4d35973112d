import json
import sys
from pathlib import Path

import pytest

# Ensure repository root is on sys.path so tests can import the package
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from getcoub.config import PipelineConfig  # noqa: E402
from getcoub.process_runner import ToolResult  # noqa: E402


def video_report(duration="0.5", r_frame_rate="25/1", bit_rate="800123", **extra):
    stream = {
        "index": 0,
        "codec_name": "h264",
        "codec_type": "video",
        "width": 640,
        "height": 360,
        "r_frame_rate": r_frame_rate,
        "duration": duration,
        "bit_rate": bit_rate,
    }
    stream.update(extra)
    return {"streams": [stream], "format": {"duration": duration}}


def audio_report(duration="12.3", bit_rate="128499", sample_rate="44100"):
    return {
        "streams": [
            {
                "index": 0,
                "codec_name": "mp3",
                "codec_type": "audio",
                "sample_rate": sample_rate,
                "duration": duration,
                "bit_rate": bit_rate,
            }
        ],
        "format": {"duration": duration},
    }


def classify(args):
    """Name the pipeline step a command line belongs to."""
    if "ffprobe" in Path(args[0]).name:
        return "probe"
    if "mpegts" in args:
        return "transcode"
    if "concat" in args:
        return "concat"
    if "-shortest" in args:
        return "mux"
    return "unknown"


class FakeRunner:
    """Scripted stand-in for ToolRunner.

    ffprobe calls answer with the report registered for the probed path;
    ffmpeg calls create their output file. Steps listed in ``fail`` (by step
    name, or "probe:<path>") return exit code 1 with the given stderr.
    """

    def __init__(self, reports=None, fail=None):
        self.reports = {str(k): v for k, v in (reports or {}).items()}
        self.fail = fail or {}
        self.calls = []
        self.timeouts = []

    def steps(self):
        return [classify(args) for args in self.calls]

    def run(self, args, timeout=None):
        args = [str(a) for a in args]
        self.calls.append(args)
        self.timeouts.append(timeout)
        step = classify(args)
        command = " ".join(args)

        key = f"probe:{args[-1]}" if step == "probe" else step
        if key in self.fail or step in self.fail:
            stderr = self.fail.get(key, self.fail.get(step))
            return ToolResult(False, 1, stderr=stderr, command=command)

        if step == "probe":
            report = self.reports[args[-1]]
            stdout = report if isinstance(report, str) else json.dumps(report)
            return ToolResult(True, 0, stdout=stdout, command=command)

        Path(args[-1]).write_bytes(b"\x00media")
        return ToolResult(True, 0, command=command)


@pytest.fixture
def config(tmp_path):
    return PipelineConfig(
        probe_tool_path="ffprobe",
        transcode_tool_path="ffmpeg",
        working_directory=str(tmp_path / "temp"),
        output_directory=str(tmp_path / "out"),
    )


@pytest.fixture
def downloaded(config):
    """Raw video and audio files as the retrieval step leaves them."""
    run_dir = config.run_directory("dl5px")
    run_dir.mkdir(parents=True)
    video = run_dir / "clip_muted_huge.mp4"
    audio = run_dir / "clip_high.mp3"
    video.write_bytes(b"video")
    audio.write_bytes(b"audio")
    return video, audio

"""
Loop manifests for the ffmpeg concat demuxer.

A 0.5 second clip looped under a 400 second track needs hundreds of inputs.
Passing them on the command line overflows the OS argument limit, so the
repeats are written to a list file that ffmpeg reads with ``-f concat``.
"""

import logging
import math
import os
from pathlib import Path
from typing import Tuple

from .media_probe import StreamDescriptor

LOG = logging.getLogger(__name__)


def loops_count(video: StreamDescriptor, audio: StreamDescriptor) -> int:
    """How many times the video must repeat to cover the audio (at least 1)."""
    if video.duration <= 0:
        return 1
    ratio = audio.duration / video.duration
    if math.isnan(ratio) or math.isinf(ratio):
        return 1
    return max(1, int(math.floor(ratio)))


def concat_path(path) -> str:
    """Path in the concat demuxer's syntax: forward slashes, quotes escaped."""
    normalized = str(path).replace("\\", "/")
    return normalized.replace("'", "'\\''")


def render_manifest(entry_path, count: int) -> str:
    line = f"file '{concat_path(entry_path)}'"
    return "\n".join([line] * count)


def manifest_path_for(workdir, coub_id: str) -> Path:
    return Path(workdir) / f"{coub_id}.txt"


def build_manifest(
    video: StreamDescriptor,
    audio: StreamDescriptor,
    workdir,
    coub_id: str,
    ts_path,
) -> Tuple[Path, int]:
    """Write the loop list for one run.

    Args:
        video: Descriptor of the source video
        audio: Descriptor of the audio track
        workdir: Run working directory
        coub_id: Coub identifier, names the list file
        ts_path: MPEG-TS intermediate to repeat

    Returns:
        (manifest path, number of repeats)
    """
    count = loops_count(video, audio)
    manifest = manifest_path_for(workdir, coub_id)
    manifest.parent.mkdir(parents=True, exist_ok=True)
    # ffmpeg resolves relative entries against the list file's directory
    entry = os.path.abspath(ts_path)
    with open(manifest, "w", encoding="utf-8", newline="") as f:
        f.write(render_manifest(entry, count))
    LOG.debug(
        "Wrote loop list %s: %d x %.3fs to cover %.3fs",
        manifest,
        count,
        video.duration,
        audio.duration,
    )
    return manifest, count

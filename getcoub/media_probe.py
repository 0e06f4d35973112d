"""
Stream probing for downloaded coub media.

This module provides functions to:
- Run ffprobe against a video or audio file and read its first stream
- Normalize the reported metadata into a StreamDescriptor
- Turn ffprobe frame rates ("30000/1001", "25", "0/0") into plain numbers
"""

import json
import logging
import math
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import ProbeError
from .process_runner import ToolRunner

LOG = logging.getLogger(__name__)

VIDEO = "video"
AUDIO = "audio"


@dataclass
class StreamDescriptor:
    """Normalized metadata for the first stream of one media file."""

    path: str
    filename: str
    kind: str  # "video" or "audio"
    codec: str
    duration: float  # seconds, finite and >= 0
    bit_rate: float  # kbps
    fps: float = 0.0
    width: int = 0
    height: int = 0
    sample_rate: int = 0

    def summary(self) -> str:
        """Human-readable one-liner used for progress notifications."""
        if self.kind == VIDEO:
            return (
                f"Video info: {self.codec}, {self.width}x{self.height}, "
                f"{self.duration}s, {self.bit_rate}kbps, {self.fps}fps"
            )
        return (
            f"Audio info: {self.codec}, {self.duration}s, "
            f"{self.bit_rate}kbps, {self.sample_rate}Hz"
        )

    def __repr__(self):
        return f"<StreamDescriptor {self.kind} {self.filename}: {self.codec}>"


def parse_fps(raw: Optional[str]) -> float:
    """Convert an ffprobe frame rate ("60/2", "25") into fps.

    Frame rate is informational only, so anything that cannot be turned into
    a finite number (division by zero, garbage, missing) yields 0.
    """
    if raw is None:
        return 0.0
    parts = str(raw).strip().split("/")
    try:
        if len(parts) == 1:
            value = float(parts[0])
        elif len(parts) == 2:
            value = float(parts[0]) / float(parts[1])
        else:
            return 0.0
    except (ValueError, ZeroDivisionError):
        return 0.0
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return value


def _to_float(value: Any) -> Optional[float]:
    """Parse a numeric ffprobe field; None if missing or not finite."""
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _to_int(value: Any) -> int:
    number = _to_float(value)
    return int(number) if number is not None else 0


def video_bit_rate_kbps(bits_per_second: Any) -> float:
    """bits/s to kbps, kept to 3 decimals."""
    bps = _to_float(bits_per_second) or 0.0
    return round(bps / 1000, 3)


def audio_bit_rate_kbps(bits_per_second: Any) -> int:
    """bits/s to kbps, rounded half-up to a whole number.

    Video keeps three decimals while audio is rounded; the two formats have
    always been reported this way and downstream messages rely on it.
    """
    bps = _to_float(bits_per_second) or 0.0
    return int(math.floor(bps / 1000 + 0.5))


def build_probe_command(file_path: str, ffprobe_path: str = "ffprobe") -> list:
    return [
        ffprobe_path,
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_format",
        "-show_streams",
        str(file_path),
    ]


def _resolve_duration(
    stream: Dict[str, Any], container: Dict[str, Any], file_path: str
) -> float:
    duration = _to_float(stream.get("duration"))
    if duration is None:
        # Some containers only report duration at the format level
        duration = _to_float(container.get("duration"))
    if duration is None or duration < 0:
        LOG.warning("No usable duration reported for %s, assuming 0", file_path)
        return 0.0
    return duration


def parse_probe_report(
    report: Dict[str, Any], file_path: str, kind: str
) -> StreamDescriptor:
    """Build a descriptor from ffprobe's JSON report.

    Raises:
        ProbeError: If the report lists no stream
    """
    stage = f"{kind} info"
    streams = report.get("streams") or []
    if not streams or not isinstance(streams[0], dict):
        raise ProbeError(f"No streams found in {file_path}", stage=stage)

    stream = streams[0]
    container = report.get("format") or {}
    filename = os.path.basename(file_path)
    codec = stream.get("codec_name", "unknown")
    duration = _resolve_duration(stream, container, file_path)

    if kind == VIDEO:
        return StreamDescriptor(
            path=str(file_path),
            filename=filename,
            kind=VIDEO,
            codec=codec,
            duration=duration,
            bit_rate=video_bit_rate_kbps(stream.get("bit_rate")),
            fps=parse_fps(stream.get("r_frame_rate")),
            width=_to_int(stream.get("width")),
            height=_to_int(stream.get("height")),
        )

    return StreamDescriptor(
        path=str(file_path),
        filename=filename,
        kind=AUDIO,
        codec=codec,
        duration=duration,
        bit_rate=audio_bit_rate_kbps(stream.get("bit_rate")),
        sample_rate=_to_int(stream.get("sample_rate")),
    )


def probe_file(
    file_path: str,
    kind: str,
    runner: Optional[ToolRunner] = None,
    ffprobe_path: str = "ffprobe",
    timeout: Optional[float] = None,
) -> StreamDescriptor:
    """
    Use ffprobe to describe the first stream of a media file.

    Args:
        file_path: Path to the downloaded video or audio file
        kind: "video" or "audio"
        runner: ToolRunner used to spawn ffprobe
        ffprobe_path: ffprobe executable
        timeout: Optional timeout for the ffprobe process

    Returns:
        StreamDescriptor for streams[0]

    Raises:
        ProbeError: If ffprobe fails, prints invalid JSON, or reports no stream
    """
    if kind not in (VIDEO, AUDIO):
        raise ValueError(f"Unknown media kind: {kind}")

    stage = f"{kind} info"
    runner = runner or ToolRunner()
    result = runner.run(build_probe_command(file_path, ffprobe_path), timeout=timeout)
    if not result.success:
        raise ProbeError(f"ffprobe failed: {result.diagnostic}", stage=stage)

    try:
        report = json.loads(result.stdout or "")
    except json.JSONDecodeError as e:
        raise ProbeError(
            f"Could not parse ffprobe output for {file_path}: {e}", stage=stage
        ) from e
    if not isinstance(report, dict):
        raise ProbeError(f"Unexpected ffprobe output for {file_path}", stage=stage)

    descriptor = parse_probe_report(report, file_path, kind)
    LOG.debug("Probed %r", descriptor)
    return descriptor

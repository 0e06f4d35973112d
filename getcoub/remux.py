"""
Remux pipeline: turn a short video track and a long audio track into one
looping, playable file.

Steps run strictly in order, each one an external tool invocation awaited in
the default executor:

    PROBE_VIDEO -> PROBE_AUDIO -> TRANSCODE -> CONCAT -> MUX -> CLEANUP -> COMPLETED

Any step may fail, which moves the run to FAILED and stops it.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
from pathlib import Path
from typing import Iterable, List, Optional

from .config import PipelineConfig
from .errors import ConcatError, GetCoubError, MuxError, TranscodeError
from .loop_list import build_manifest
from .media_probe import AUDIO, VIDEO, StreamDescriptor, probe_file
from .notifications import Notifier
from .process_runner import ToolRunner

LOG = logging.getLogger(__name__)

# Bitstream filters that make a stream safe to cut and join as MPEG-TS
CONCAT_BITSTREAM_FILTERS = {
    "h264": "h264_mp4toannexb",
    "hevc": "hevc_mp4toannexb",
}
DEFAULT_BITSTREAM_FILTER = "h264_mp4toannexb"


class PipelineState(Enum):
    PROBE_VIDEO = "probe_video"
    PROBE_AUDIO = "probe_audio"
    TRANSCODE = "transcode"
    CONCAT = "concat"
    MUX = "mux"
    CLEANUP = "cleanup"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = (PipelineState.COMPLETED, PipelineState.FAILED)


@dataclass
class PipelineRun:
    """Everything one remux run owns. Lives for a single invocation."""

    coub_id: str
    workdir: Path
    video_path: Path
    audio_path: Path
    thumb_path: Optional[Path] = None
    video: Optional[StreamDescriptor] = None
    audio: Optional[StreamDescriptor] = None
    ts_path: Optional[Path] = None
    concat_path: Optional[Path] = None
    manifest_path: Optional[Path] = None
    loops: int = 0
    output_path: Optional[Path] = None
    state: PipelineState = PipelineState.PROBE_VIDEO
    error: Optional[GetCoubError] = None
    history: List[PipelineState] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.COMPLETED

    def intermediates(self) -> List[Path]:
        """Files this run deletes once the output exists."""
        candidates = [
            self.ts_path,
            self.concat_path,
            self.video_path,
            self.audio_path,
            self.manifest_path,
        ]
        return [p for p in candidates if p is not None]


def bitstream_filter_for(codec: str) -> str:
    return CONCAT_BITSTREAM_FILTERS.get((codec or "").lower(), DEFAULT_BITSTREAM_FILTER)


def output_path_for(output_directory, coub_id: str, video_path) -> Path:
    """coub_<id>_<source video name> inside the output directory."""
    return Path(output_directory) / f"coub_{coub_id}_{os.path.basename(video_path)}"


def remove_files(paths: Iterable[Path]) -> List[Path]:
    """Delete every path, continuing past failures.

    Returns:
        Paths that could not be deleted
    """
    failed = []
    for path in paths:
        try:
            os.remove(path)
            LOG.debug("Removed %s", path)
        except FileNotFoundError:
            LOG.debug("Already gone: %s", path)
        except OSError as e:
            LOG.warning("Could not remove %s: %s", path, e)
            failed.append(path)
    return failed


class RemuxPipeline:
    """Drives one PipelineRun through its states.

    Blocking work (ffprobe, ffmpeg, file writes) runs in the default executor
    so the event loop stays free; only one step is ever in flight.
    """

    def __init__(
        self,
        config: PipelineConfig,
        notifier: Optional[Notifier] = None,
        runner: Optional[ToolRunner] = None,
    ):
        self.config = config
        self.notifier = notifier or Notifier()
        self.runner = runner or ToolRunner()
        self._handlers = {
            PipelineState.PROBE_VIDEO: self._probe_video,
            PipelineState.PROBE_AUDIO: self._probe_audio,
            PipelineState.TRANSCODE: self._transcode,
            PipelineState.CONCAT: self._concat,
            PipelineState.MUX: self._mux,
            PipelineState.CLEANUP: self._cleanup,
        }

    async def run(
        self,
        coub_id: str,
        video_path,
        audio_path,
        thumb_path=None,
    ) -> PipelineRun:
        """Remux downloaded media into the final output file.

        Args:
            coub_id: Coub identifier (names the manifest and the output)
            video_path: Downloaded video track
            audio_path: Downloaded audio track
            thumb_path: Downloaded thumbnail, carried along but not used

        Returns:
            The finished PipelineRun (state COMPLETED or FAILED)
        """
        run = PipelineRun(
            coub_id=coub_id,
            workdir=self.config.run_directory(coub_id),
            video_path=Path(video_path),
            audio_path=Path(audio_path),
            thumb_path=Path(thumb_path) if thumb_path else None,
        )

        while run.state not in TERMINAL_STATES:
            run.history.append(run.state)
            handler = self._handlers[run.state]
            try:
                run.state = await handler(run)
            except GetCoubError as e:
                LOG.debug("Step %s failed: %s", run.state.value, e)
                run.error = e
                run.state = PipelineState.FAILED

        if run.state is PipelineState.FAILED:
            self.notifier.error(run.error.user_message())
            if self.config.cleanup_on_failure:
                await self._in_executor(self._discard, run)
        else:
            self.notifier.complete(str(run.output_path))
        return run

    async def _in_executor(self, fn, *args, **kwargs):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, partial(fn, *args, **kwargs))

    async def _run_tool(self, args):
        return await self._in_executor(
            self.runner.run, args, timeout=self.config.tool_timeout
        )

    async def _probe(self, path, kind) -> StreamDescriptor:
        descriptor = await self._in_executor(
            probe_file,
            str(path),
            kind,
            runner=self.runner,
            ffprobe_path=self.config.probe_tool_path,
            timeout=self.config.tool_timeout,
        )
        self.notifier.progress(descriptor.summary())
        return descriptor

    async def _probe_video(self, run: PipelineRun) -> PipelineState:
        run.video = await self._probe(run.video_path, VIDEO)
        return PipelineState.PROBE_AUDIO

    async def _probe_audio(self, run: PipelineRun) -> PipelineState:
        run.audio = await self._probe(run.audio_path, AUDIO)
        return PipelineState.TRANSCODE

    async def _transcode(self, run: PipelineRun) -> PipelineState:
        run.ts_path = Path(f"{run.video_path}.ts")
        result = await self._run_tool(
            [
                self.config.transcode_tool_path,
                "-y",
                "-i",
                str(run.video_path),
                "-c",
                "copy",
                "-bsf:v",
                bitstream_filter_for(run.video.codec),
                "-f",
                "mpegts",
                str(run.ts_path),
            ]
        )
        if not result.success:
            raise TranscodeError(result.diagnostic)

        self.notifier.progress(f"Temp .ts file is ready: {run.ts_path}")
        return PipelineState.CONCAT

    async def _concat(self, run: PipelineRun) -> PipelineState:
        self.notifier.progress("Merging .ts files...")
        try:
            run.manifest_path, run.loops = await self._in_executor(
                build_manifest,
                run.video,
                run.audio,
                run.workdir,
                run.coub_id,
                run.ts_path,
            )
        except OSError as e:
            raise ConcatError(f"Could not write loop list: {e}") from e

        run.concat_path = Path(f"{run.video_path}.mp4")
        result = await self._run_tool(
            [
                self.config.transcode_tool_path,
                "-y",
                "-f",
                "concat",
                "-safe",
                "0",
                "-i",
                str(run.manifest_path),
                "-c",
                "copy",
                str(run.concat_path),
            ]
        )
        if not result.success:
            raise ConcatError(result.diagnostic)

        self.notifier.progress(
            f"Merged {run.loops} loop(s) into a single video: {run.concat_path}"
        )
        return PipelineState.MUX

    async def _mux(self, run: PipelineRun) -> PipelineState:
        self.notifier.progress("Adding audio stream...")
        run.output_path = output_path_for(
            self.config.output_directory, run.coub_id, run.video_path
        )
        try:
            run.output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise MuxError(f"Could not create output directory: {e}") from e

        # -shortest trims the leftover part of the last video loop
        result = await self._run_tool(
            [
                self.config.transcode_tool_path,
                "-y",
                "-i",
                str(run.concat_path),
                "-i",
                str(run.audio_path),
                "-codec",
                "copy",
                "-shortest",
                str(run.output_path),
            ]
        )
        if not result.success:
            raise MuxError(result.diagnostic)
        return PipelineState.CLEANUP

    async def _cleanup(self, run: PipelineRun) -> PipelineState:
        self.notifier.progress("Removing temporary files...")
        failed = await self._in_executor(self._discard, run)
        if failed:
            LOG.warning(
                "%d temporary file(s) left behind: %s",
                len(failed),
                ", ".join(str(p) for p in failed),
            )
        return PipelineState.COMPLETED

    def _discard(self, run: PipelineRun) -> List[Path]:
        failed = remove_files(run.intermediates())
        try:
            run.workdir.rmdir()
        except OSError as e:
            # Not empty (thumbnail, foreign files) or never created
            LOG.debug("Keeping working directory %s: %s", run.workdir, e)
        return failed

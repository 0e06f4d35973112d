"""
End-to-end processing of one coub link: discover media, download it, remux.
"""

import asyncio
import logging
import shutil
from functools import partial
from pathlib import Path
from typing import Optional

from .coub_api import CoubClient, coub_id_from_link, filename_from_url
from .config import PipelineConfig
from .errors import GetCoubError, NetworkError
from .logging_config import get_job_id, set_job_id
from .notifications import Notifier
from .remux import PipelineRun, PipelineState, RemuxPipeline, output_path_for

LOG = logging.getLogger(__name__)


class CoubJob:
    """Retrieves one coub and hands the downloaded files to the remux pipeline."""

    def __init__(
        self,
        link: str,
        config: PipelineConfig,
        notifier: Optional[Notifier] = None,
        client: Optional[CoubClient] = None,
        pipeline: Optional[RemuxPipeline] = None,
    ):
        self.link = link
        self.coub_id = coub_id_from_link(link)
        self.config = config
        self.notifier = notifier or Notifier()
        self.client = client or CoubClient(
            timeout=config.http_timeout, user_agent=config.user_agent
        )
        self.pipeline = pipeline or RemuxPipeline(config, notifier=self.notifier)

    async def _in_executor(self, fn, *args, **kwargs):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, partial(fn, *args, **kwargs))

    async def run(self) -> PipelineRun:
        """Process the coub.

        Returns:
            PipelineRun describing the outcome; retrieval failures come back
            as a FAILED run with no remux history.
        """
        previous = get_job_id()
        set_job_id(self.coub_id)
        try:
            return await self._run()
        finally:
            set_job_id(previous)

    async def _run(self) -> PipelineRun:
        workdir = self.config.run_directory(self.coub_id)
        try:
            workdir.mkdir(parents=True, exist_ok=True)
            sources = await self._in_executor(self.client.fetch_sources, self.link)

            video_path = workdir / filename_from_url(sources.video_url)
            audio_path = workdir / filename_from_url(sources.audio_url)

            self.notifier.progress("Loading video...")
            await self._in_executor(
                self.client.download, sources.video_url, video_path, "video"
            )
            self.notifier.progress(f"Video is loaded: {sources.video_url}")

            self.notifier.progress("Loading audio...")
            await self._in_executor(
                self.client.download, sources.audio_url, audio_path, "audio"
            )
            self.notifier.progress(f"Audio file is loaded: {sources.audio_url}")
        except OSError as e:
            return self._failed(workdir, GetCoubError(str(e), stage="setup"))
        except GetCoubError as e:
            return self._failed(workdir, e)

        thumb_path = await self._fetch_thumbnail(sources.thumbnail_url, workdir)

        run = await self.pipeline.run(self.coub_id, video_path, audio_path, thumb_path)
        if thumb_path is not None and (
            run.succeeded or self.config.cleanup_on_failure
        ):
            await self._in_executor(self._keep_thumbnail, run, thumb_path)
        return run

    async def _fetch_thumbnail(self, url: Optional[str], workdir: Path):
        if not url:
            return None
        self.notifier.progress("Loading thumbnail...")
        thumb_path = workdir / filename_from_url(url)
        try:
            await self._in_executor(self.client.download, url, thumb_path, "thumbnail")
        except NetworkError as e:
            # The thumbnail is not part of the output; keep going without it
            LOG.warning("Thumbnail unavailable: %s", e)
            self.notifier.progress(f"Thumbnail skipped: {e.diagnostic}")
            return None
        self.notifier.progress(f"Thumb image is loaded: {url}")
        return thumb_path

    def _keep_thumbnail(self, run: PipelineRun, thumb_path: Path) -> None:
        """Move the thumbnail next to the output, or drop it."""
        try:
            if run.succeeded and self.config.save_thumbnail:
                target = output_path_for(
                    self.config.output_directory, self.coub_id, thumb_path
                )
                shutil.move(str(thumb_path), str(target))
                LOG.info("Thumbnail saved: %s", target)
            else:
                thumb_path.unlink()
            run.workdir.rmdir()
        except OSError as e:
            LOG.warning("Thumbnail cleanup incomplete: %s", e)

    def _failed(self, workdir: Path, error: GetCoubError) -> PipelineRun:
        run = PipelineRun(
            coub_id=self.coub_id,
            workdir=workdir,
            video_path=Path(),
            audio_path=Path(),
            state=PipelineState.FAILED,
            error=error,
        )
        self.notifier.error(error.user_message())
        return run

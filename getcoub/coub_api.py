import logging
import os
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests

from .errors import NetworkError, ParseError
from .parser import CoubSources, parse_coub_page

LOG = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 64 * 1024


def coub_id_from_link(link: str) -> str:
    """Coub identifier: last path segment of the coub link.

    Example: https://coub.com/view/dl5px -> dl5px
    """
    path = urlparse(link).path if "://" in link else link.split("?")[0]
    coub_id = os.path.basename(path.rstrip("/"))
    if not coub_id:
        raise ParseError(f"Cannot derive coub id from link: {link}")
    return coub_id


def filename_from_url(url: str) -> str:
    return os.path.basename(urlparse(url).path)


class CoubClient:
    """Client for coub pages and the media files they reference.

    Provides methods to discover a coub's media URLs and download them.
    """

    def __init__(self, timeout: float = 30, user_agent: Optional[str] = None):
        """Initialize client.

        Args:
            timeout: Request timeout in seconds
            user_agent: Optional User-Agent header sent with every request
        """
        self.timeout = timeout
        self.headers = {"User-Agent": user_agent} if user_agent else {}

    def fetch_sources(self, link: str) -> CoubSources:
        """Load a coub page and extract its video, audio and thumbnail URLs.

        Raises:
            NetworkError: If the page cannot be loaded
            ParseError: If the page does not describe a coub
        """
        LOG.info("Loading coub page: %s", link)
        try:
            resp = requests.get(link, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as e:
            LOG.error("Page request failed: %s", e)
            raise NetworkError(
                str(e), stage="page", action="loading coub page"
            ) from e

        if resp.status_code != 200:
            raise NetworkError(
                f"HTTP {resp.status_code} for {link}",
                stage="page",
                action="loading coub page",
            )

        sources = parse_coub_page(resp.text)
        LOG.debug(
            "Sources: video=%s audio=%s thumb=%s",
            sources.video_url,
            sources.audio_url,
            sources.thumbnail_url,
        )
        return sources

    def download(self, url: str, dest, label: str = "file") -> Path:
        """Download a media file to dest.

        Args:
            url: Remote file URL
            dest: Local path to write
            label: What is being downloaded, used in error messages

        Returns:
            Path of the written file

        Raises:
            NetworkError: On transport errors, non-200 status or write failure
        """
        dest = Path(dest)
        action = f"downloading {label}"
        try:
            with requests.get(
                url, headers=self.headers, timeout=self.timeout, stream=True
            ) as resp:
                if resp.status_code != 200:
                    raise NetworkError(
                        f"HTTP {resp.status_code} for {url}",
                        stage=label,
                        action=action,
                    )
                dest.parent.mkdir(parents=True, exist_ok=True)
                with open(dest, "wb") as f:
                    for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
        except requests.RequestException as e:
            LOG.error("Download of %s failed: %s", url, e)
            raise NetworkError(str(e), stage=label, action=action) from e
        except OSError as e:
            raise NetworkError(
                f"Could not write {dest}: {e}", stage=label, action=action
            ) from e

        LOG.debug("Downloaded %s -> %s (%d bytes)", url, dest, dest.stat().st_size)
        return dest

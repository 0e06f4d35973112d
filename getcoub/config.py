"""
Configuration settings for getcoub.

All settings can be overridden via environment variables or .env file.
Command-line flags override these again (see __main__.py).
"""

import os
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional


def get_env_bool(key: str, default: bool) -> bool:
    """Get boolean from environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def get_env_int(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Load .env file if it exists (for local development)
def load_dotenv():
    """Load environment variables from .env file if it exists."""
    env_file = Path(__file__).parent.parent / ".env"
    if env_file.exists():
        with open(env_file) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, value = line.split("=", 1)
                    if key not in os.environ:
                        os.environ[key] = value


load_dotenv()


def default_output_dir() -> str:
    """Desktop on Windows, home directory elsewhere."""
    home = Path.home()
    if sys.platform == "win32":
        return str(home / "Desktop")
    return str(home)


# =============================================================================
# EXTERNAL TOOLS
# =============================================================================
# Media inspection tool (stream metadata as JSON)
FFPROBE_PATH = os.getenv("FFPROBE_PATH", "ffprobe")

# Transcode / concat / mux tool
FFMPEG_PATH = os.getenv("FFMPEG_PATH", "ffmpeg")

# Per-invocation timeout in seconds (0 = wait forever)
TOOL_TIMEOUT = get_env_int("TOOL_TIMEOUT", 0)

# =============================================================================
# DIRECTORIES
# =============================================================================
# Scratch space for downloads and intermediates. Each coub gets its own
# subdirectory named after its id.
WORK_DIR = os.getenv("WORK_DIR", os.path.join(os.getcwd(), "temp"))

# Where finished coub_<id>_<name>.mp4 files are written
OUTPUT_DIR = os.getenv("OUTPUT_DIR", default_output_dir())

# =============================================================================
# RETRIEVAL
# =============================================================================
HTTP_TIMEOUT = get_env_int("HTTP_TIMEOUT", 30)
USER_AGENT = os.getenv(
    "USER_AGENT",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0 Safari/537.36",
)

# Thumbnails are always fetched; set to keep them next to the output file
SAVE_THUMBNAIL = get_env_bool("SAVE_THUMBNAIL", False)

# Failed runs leave their intermediates behind unless this is set
CLEANUP_ON_FAILURE = get_env_bool("CLEANUP_ON_FAILURE", False)

# =============================================================================
# LOGGING
# =============================================================================
LOG_VERBOSITY = os.getenv("LOG_VERBOSITY", "NORMAL")  # MINIMAL, NORMAL, or VERBOSE
LOG_FILE = os.getenv("LOG_FILE") or None

# Validate LOG_VERBOSITY
if LOG_VERBOSITY.upper() not in ("MINIMAL", "NORMAL", "VERBOSE"):
    raise ValueError(
        f"Invalid LOG_VERBOSITY: {LOG_VERBOSITY}. Must be MINIMAL, NORMAL, or VERBOSE"
    )


@dataclass(frozen=True)
class PipelineConfig:
    """Explicit settings handed to the remux pipeline and the job runner."""

    probe_tool_path: str = "ffprobe"
    transcode_tool_path: str = "ffmpeg"
    working_directory: str = "./temp"
    output_directory: str = "."
    tool_timeout: Optional[float] = None
    http_timeout: float = 30
    user_agent: str = USER_AGENT
    cleanup_on_failure: bool = False
    save_thumbnail: bool = False

    def __post_init__(self):
        # A timeout of 0 (or less) means no per-process limit
        if self.tool_timeout is not None and self.tool_timeout <= 0:
            object.__setattr__(self, "tool_timeout", None)

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Build a config from the module-level settings above."""
        return cls(
            probe_tool_path=FFPROBE_PATH,
            transcode_tool_path=FFMPEG_PATH,
            working_directory=WORK_DIR,
            output_directory=OUTPUT_DIR,
            tool_timeout=TOOL_TIMEOUT or None,
            http_timeout=HTTP_TIMEOUT,
            user_agent=USER_AGENT,
            cleanup_on_failure=CLEANUP_ON_FAILURE,
            save_thumbnail=SAVE_THUMBNAIL,
        )

    def with_overrides(self, **overrides) -> "PipelineConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def run_directory(self, coub_id: str) -> Path:
        """Working subdirectory owned by a single run."""
        return Path(self.working_directory) / coub_id

"""
Preflight checks for getcoub.

Verifies that the external tools and directories a run depends on are
available before any download starts.
"""

import logging
import os
import shutil
from pathlib import Path

from .config import PipelineConfig

LOG = logging.getLogger(__name__)


def check_tool(name: str, path: str) -> bool:
    """Check that an executable exists (on PATH or at an explicit location).

    Returns True if the tool can be started, False otherwise.
    """
    resolved = shutil.which(path)
    if resolved:
        LOG.info("✓ %s is available: %s", name, resolved)
        return True

    LOG.error("✗ %s not found: %s", name, path)
    return False


def check_directory(name: str, directory: str) -> bool:
    """Check that a directory exists (creating it if needed) and is writable.

    Returns True if files can be written there, False otherwise.
    """
    try:
        path = Path(directory)
        path.mkdir(parents=True, exist_ok=True)
        if not os.access(path, os.W_OK):
            LOG.error("✗ %s is not writable: %s", name, path)
            return False
        LOG.info("✓ %s is writable: %s", name, path)
        return True
    except OSError as e:
        LOG.error("✗ %s cannot be created: %s (%s)", name, directory, e)
        return False


def run_health_checks(config: PipelineConfig) -> bool:
    """Run all preflight checks.

    Returns True if all checks pass, False if any fail.
    """
    LOG.debug("Running preflight checks...")

    checks = [
        ("ffprobe", check_tool("ffprobe", config.probe_tool_path)),
        ("ffmpeg", check_tool("ffmpeg", config.transcode_tool_path)),
        (
            "Working directory",
            check_directory("Working directory", config.working_directory),
        ),
        (
            "Output directory",
            check_directory("Output directory", config.output_directory),
        ),
    ]

    passed = sum(1 for _, result in checks if result)
    LOG.debug("Preflight checks: %d/%d passed", passed, len(checks))
    return passed == len(checks)

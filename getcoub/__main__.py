"""
Main entry point for getcoub.

This allows running the package as a module:
    python -m getcoub https://coub.com/view/dl5px

Links are processed one after another.
"""

import argparse
import asyncio
import logging
import sys

from .config import LOG_FILE, LOG_VERBOSITY, PipelineConfig
from .errors import GetCoubError
from .health_check import run_health_checks
from .job import CoubJob
from .logging_config import configure_logging
from .version import get_version_string

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="getcoub",
        description="Download coubs and loop their video over the full audio track.",
    )
    parser.add_argument("links", nargs="+", help="Coub page URL(s)")
    parser.add_argument("--output-dir", help="Where finished videos are written")
    parser.add_argument("--work-dir", help="Scratch directory for downloads")
    parser.add_argument("--ffmpeg", help="ffmpeg executable")
    parser.add_argument("--ffprobe", help="ffprobe executable")
    parser.add_argument(
        "--timeout",
        type=float,
        help="Seconds before an ffmpeg/ffprobe call is abandoned",
    )
    parser.add_argument(
        "--cleanup-on-failure",
        action="store_true",
        default=None,
        help="Delete temporary files of failed runs",
    )
    parser.add_argument(
        "--save-thumbnail",
        action="store_true",
        default=None,
        help="Keep the coub thumbnail next to the output",
    )
    parser.add_argument(
        "--verbosity",
        default=LOG_VERBOSITY,
        choices=["MINIMAL", "NORMAL", "VERBOSE"],
        type=str.upper,
    )
    parser.add_argument("--log-file", default=LOG_FILE)
    parser.add_argument(
        "--skip-checks", action="store_true", help="Skip preflight checks"
    )
    parser.add_argument("--version", action="version", version=get_version_string())
    return parser


async def process_links(links, config: PipelineConfig) -> int:
    """Run every link sequentially; return the number of failures."""
    failures = 0
    for link in links:
        try:
            job = CoubJob(link, config)
        except GetCoubError as e:
            logger.error("Skipping %s: %s", link, e.user_message())
            failures += 1
            continue
        run = await job.run()
        if not run.succeeded:
            failures += 1
    return failures


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(verbosity=args.verbosity, log_file=args.log_file)

    config = PipelineConfig.from_env().with_overrides(
        probe_tool_path=args.ffprobe,
        transcode_tool_path=args.ffmpeg,
        working_directory=args.work_dir,
        output_directory=args.output_dir,
        tool_timeout=args.timeout,
        cleanup_on_failure=args.cleanup_on_failure,
        save_thumbnail=args.save_thumbnail,
    )

    if not args.skip_checks and not run_health_checks(config):
        logger.error("Preflight checks failed. Aborting.")
        return 2

    failures = asyncio.run(process_links(args.links, config))
    if failures:
        logger.error("%d of %d coub(s) failed", failures, len(args.links))
        return 1
    return 0


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()

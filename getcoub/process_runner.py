import logging
import shlex
import subprocess
from typing import Optional, Sequence

LOG = logging.getLogger(__name__)


class ToolResult:
    """Result of one external tool invocation."""

    def __init__(
        self,
        success: bool,
        returncode: int,
        stdout: str = "",
        stderr: str = "",
        command: str = "",
    ):
        self.success = success
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.command = command

    @property
    def diagnostic(self) -> str:
        """Best available explanation for a failure."""
        text = (self.stderr or "").strip()
        if text:
            return text[-1000:]
        return f"{self.command} exited with code {self.returncode}"


class ToolRunner:
    """Runs ffmpeg/ffprobe as argument lists, never through a shell.

    Captures stdout/stderr for parsing and logging. Spawn failures and
    timeouts are reported as unsuccessful results rather than raised.
    """

    def run(
        self, args: Sequence[str], timeout: Optional[float] = None
    ) -> ToolResult:
        """Execute one command.

        Args:
            args: Program followed by its arguments
            timeout: Seconds before the process is killed (None = no limit)

        Returns:
            ToolResult with execution details
        """
        args = [str(a) for a in args]
        cmd = shlex.join(args)
        LOG.info("Running: %s", cmd)

        try:
            proc = subprocess.run(
                args,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            LOG.error("Command timed out after %s seconds: %s", timeout, args[0])
            return ToolResult(
                success=False,
                returncode=-1,
                stderr=f"Command timed out after {timeout} seconds",
                command=cmd,
            )
        except OSError as e:
            LOG.error("Could not start %s: %s", args[0], e)
            return ToolResult(
                success=False,
                returncode=-1,
                stderr=str(e),
                command=cmd,
            )

        if proc.returncode != 0:
            LOG.error("%s failed (exit code %d)", args[0], proc.returncode)
            if proc.stderr:
                LOG.error("stderr: %s", proc.stderr[-500:])
            return ToolResult(
                success=False,
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
                command=cmd,
            )

        if proc.stderr:
            LOG.debug("stderr: %s", proc.stderr[-1000:])
        return ToolResult(
            success=True,
            returncode=0,
            stdout=proc.stdout,
            stderr=proc.stderr,
            command=cmd,
        )

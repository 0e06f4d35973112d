"""Error taxonomy for coub retrieval and remuxing.

Every error is terminal for the run that raised it. ``stage`` names the step
that failed and is used as the prefix of the user-facing error message.
"""

from typing import Optional


class GetCoubError(Exception):
    """Base class for all run-terminating errors."""

    action = "processing coub"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage or self.action
        self.diagnostic = message

    def user_message(self) -> str:
        """Message sent through the error notification channel."""
        return f"Error while {self.action}: {self.diagnostic}"


class NetworkError(GetCoubError):
    """Page or asset fetch failed (transport error or non-200 status)."""

    action = "downloading"

    def __init__(
        self, message: str, stage: str = "download", action: Optional[str] = None
    ):
        super().__init__(message, stage)
        if action:
            self.action = action


class ParseError(GetCoubError):
    """Expected markup or JSON structure is absent or malformed."""

    action = "parsing coub page"


class ProbeError(GetCoubError):
    """ffprobe failed or reported no usable stream."""

    def __init__(self, message: str, stage: str = "video info"):
        super().__init__(message, stage)
        self.action = f"extracting {stage}"


class TranscodeError(GetCoubError):
    """Repackaging the video into MPEG-TS failed."""

    action = "ts conversion"

    def __init__(self, message: str):
        super().__init__(message, "ts conversion")


class ConcatError(GetCoubError):
    """Concatenating the loop manifest failed."""

    action = "merging videos"

    def __init__(self, message: str):
        super().__init__(message, "merging videos")


class MuxError(GetCoubError):
    """Combining the looped video with the audio track failed."""

    action = "adding sound"

    def __init__(self, message: str):
        super().__init__(message, "adding sound")

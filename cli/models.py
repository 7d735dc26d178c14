"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional, Union


@dataclass(frozen=True)
class UploadCommand:
    """Upload a file as a new transfer and merge it."""

    file_path: str
    target_path: str = ""
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class StatusCommand:
    """Show chunk status of a transfer."""

    transfer_id: str
    command: Literal["status"] = "status"


@dataclass(frozen=True)
class ResumeCommand:
    """Re-send missing chunks of a transfer and merge it."""

    file_path: str
    transfer_id: str
    target_path: str = ""
    command: Literal["resume"] = "resume"


@dataclass(frozen=True)
class MergeCommand:
    """Merge a complete transfer."""

    transfer_id: str
    filename: Optional[str] = None
    target_path: Optional[str] = None
    command: Literal["merge"] = "merge"


CommandRequest = Union[UploadCommand, StatusCommand, ResumeCommand, MergeCommand]

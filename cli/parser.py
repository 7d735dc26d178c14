"""Command parser for CLI input."""

import shlex

from cli.models import (
    CommandRequest,
    MergeCommand,
    ResumeCommand,
    StatusCommand,
    UploadCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object (one of Upload/Status/Resume/Merge)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]

    if command_name == "upload":
        return _parse_upload(tokens[1:])
    elif command_name == "status":
        return _parse_status(tokens[1:])
    elif command_name == "resume":
        return _parse_resume(tokens[1:])
    elif command_name == "merge":
        return _parse_merge(tokens[1:])
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _parse_upload(args: list) -> UploadCommand:
    """Parse 'upload <file> [target_dir]' command."""
    if not 1 <= len(args) <= 2:
        raise ParseError("upload requires <file> and an optional [target_dir]")

    target_path = args[1] if len(args) > 1 else ""
    return UploadCommand(file_path=args[0], target_path=target_path)


def _parse_status(args: list) -> StatusCommand:
    """Parse 'status <transfer_id>' command."""
    if len(args) != 1:
        raise ParseError("status requires exactly 1 argument: <transfer_id>")

    return StatusCommand(transfer_id=args[0])


def _parse_resume(args: list) -> ResumeCommand:
    """Parse 'resume <file> <transfer_id> [target_dir]' command."""
    if not 2 <= len(args) <= 3:
        raise ParseError("resume requires <file> <transfer_id> and an optional [target_dir]")

    target_path = args[2] if len(args) > 2 else ""
    return ResumeCommand(file_path=args[0], transfer_id=args[1], target_path=target_path)


def _parse_merge(args: list) -> MergeCommand:
    """Parse 'merge <transfer_id> [filename] [target_dir]' command."""
    if not 1 <= len(args) <= 3:
        raise ParseError("merge requires <transfer_id> and optional [filename] [target_dir]")

    filename = args[1] if len(args) > 1 else None
    target_path = args[2] if len(args) > 2 else None
    return MergeCommand(transfer_id=args[0], filename=filename, target_path=target_path)

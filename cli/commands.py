"""Command handler functions for CLI operations."""

import os
from typing import Optional

from common.logging_config import get_logger
from cli.config import Config
from cli.models import MergeCommand, ResumeCommand, StatusCommand, UploadCommand
from cli.transfer_client import TransferClient, TransferClientError, UploadSummary
from cli.utils import ChunkProgress, format_file_size

logger = get_logger(__name__)


_client: Optional[TransferClient] = None


def get_client() -> TransferClient:
    """
    Get or create global TransferClient instance.

    Returns:
        TransferClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new TransferClient instance")
        _client = TransferClient(Config())
    return _client


def _format_error(e: TransferClientError) -> str:
    kind = e.kind
    if kind == "IncompleteError":
        missing = e.payload.get('missing', [])
        shown = ", ".join(str(i) for i in missing[:10])
        more = " ..." if len(missing) > 10 else ""
        return (
            f"Transfer incomplete: {e.payload.get('received')}/{e.payload.get('expected')} chunks received, "
            f"missing [{shown}{more}]"
        )
    if kind == "NotFoundError":
        return "Transfer not found (unknown id or already merged)."
    if kind == "MergeError":
        return f"Merge failed: chunk {e.payload.get('index')} is unreadable. Chunks were kept; re-send and retry."
    return f"Error: {e}"


def _merge_after_upload(client: TransferClient, summary: UploadSummary) -> str:
    lines = [f"Transfer {summary.transfer_id}: {len(summary.uploaded)} chunks sent"]
    if not summary.complete:
        lines.append(f"Transfer not complete yet. Run: status {summary.transfer_id}")
        return "\n".join(lines)

    result = client.merge(summary.transfer_id, summary.filename, summary.target_path)
    lines.append(f"Merged into {result['artifact_path']} ({format_file_size(result['size'])})")
    return "\n".join(lines)


def handle_upload(cmd: UploadCommand, client: Optional[TransferClient] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with file path and target directory
        client: Optional TransferClient for dependency injection (testing)

    Returns:
        Success or error message
    """
    path = os.path.expanduser(cmd.file_path)
    if not os.path.isfile(path):
        return f"Error: File not found: {cmd.file_path}"

    logger.info(f"Executing upload command: {path} -> {cmd.target_path or '.'}")
    if client is None:
        client = get_client()

    try:
        summary = client.upload_file(
            path,
            target_path=cmd.target_path,
            on_progress=ChunkProgress(os.path.basename(path)),
        )
        return _merge_after_upload(client, summary)
    except TransferClientError as e:
        logger.warning(f"Upload of {path} failed: {e}")
        return _format_error(e)
    except OSError as e:
        logger.error(f"Cannot read {path}: {e}")
        return f"Error: Cannot read {cmd.file_path}: {e}"


def handle_resume(cmd: ResumeCommand, client: Optional[TransferClient] = None) -> str:
    """
    Handle 'resume' command.

    Returns:
        Success or error message
    """
    path = os.path.expanduser(cmd.file_path)
    if not os.path.isfile(path):
        return f"Error: File not found: {cmd.file_path}"

    logger.info(f"Executing resume command: {path} transfer={cmd.transfer_id}")
    if client is None:
        client = get_client()

    try:
        summary = client.resume(
            path,
            cmd.transfer_id,
            target_path=cmd.target_path,
            on_progress=ChunkProgress(os.path.basename(path)),
        )
        return _merge_after_upload(client, summary)
    except TransferClientError as e:
        logger.warning(f"Resume of {cmd.transfer_id} failed: {e}")
        return _format_error(e)
    except OSError as e:
        logger.error(f"Cannot read {path}: {e}")
        return f"Error: Cannot read {cmd.file_path}: {e}"


def handle_status(cmd: StatusCommand, client: Optional[TransferClient] = None) -> str:
    """
    Handle 'status' command.

    Returns:
        Formatted transfer status
    """
    if client is None:
        client = get_client()

    try:
        status = client.status(cmd.transfer_id)
    except TransferClientError as e:
        return _format_error(e)

    missing = status['missing']
    lines = [
        f"Transfer:  {status['transfer_id']}",
        f"File:      {os.path.join(status['target_path'], status['filename'])}",
        f"Chunks:    {status['received']}/{status['total_chunks']}",
        f"Complete:  {'yes' if status['complete'] else 'no'}",
    ]
    if missing:
        shown = ", ".join(str(i) for i in missing[:20])
        lines.append(f"Missing:   {shown}{' ...' if len(missing) > 20 else ''}")
    return "\n".join(lines)


def handle_merge(cmd: MergeCommand, client: Optional[TransferClient] = None) -> str:
    """
    Handle 'merge' command.

    Returns:
        Artifact path or error message
    """
    logger.info(f"Executing merge command: transfer={cmd.transfer_id}")
    if client is None:
        client = get_client()

    try:
        result = client.merge(cmd.transfer_id, cmd.filename or "", cmd.target_path or "")
    except TransferClientError as e:
        return _format_error(e)

    return (
        f"Merged {result['chunks']} chunks into {result['artifact_path']} "
        f"({format_file_size(result['size'])}, sha256 {result['checksum']})"
    )

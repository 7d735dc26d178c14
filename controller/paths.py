"""Validation and resolution of transfer ids and artifact paths."""

from pathlib import Path, PurePosixPath

from controller.exceptions import ValidationError
from nodestore.local_storage import is_safe_segment


def validate_transfer_id(transfer_id: str) -> str:
    """
    Check that a transfer id is non-empty and usable as a storage key.

    Raises:
        ValidationError: If the id is empty or contains unsafe characters
    """
    if not transfer_id:
        raise ValidationError("transfer_id is required")
    if not is_safe_segment(transfer_id):
        raise ValidationError(
            f"transfer_id {transfer_id!r} must be 1-128 characters of letters, digits, '.', '_' or '-'"
        )
    return transfer_id


def validate_filename(filename: str) -> str:
    """
    Check that a filename is a single, non-empty path component.

    Raises:
        ValidationError: If the filename is empty or contains a path separator
    """
    if not filename or not filename.strip():
        raise ValidationError("filename is required")
    if '/' in filename or '\\' in filename or filename in ('.', '..') or '\x00' in filename:
        raise ValidationError(f"filename {filename!r} must be a plain file name")
    return filename


def validate_target_path(target_path: str) -> str:
    """
    Normalize a virtual destination directory.

    Leading and trailing slashes are stripped; '.' segments are dropped.

    Returns:
        Normalized relative POSIX path ('' for the artifact root)

    Raises:
        ValidationError: If the path would escape the artifact root
    """
    if not target_path:
        return ""
    if '\\' in target_path or '\x00' in target_path:
        raise ValidationError(f"target_path {target_path!r} contains invalid characters")

    parts = [part for part in PurePosixPath(target_path.strip('/')).parts if part not in ('', '.')]
    if any(part == '..' for part in parts):
        raise ValidationError(f"target_path {target_path!r} must stay inside the upload root")
    return "/".join(parts)


def logical_artifact_path(target_path: str, filename: str) -> str:
    """
    Logical path of a merged artifact: 'target_path/filename', or 'filename' at the root.
    """
    return f"{target_path}/{filename}" if target_path else filename


def resolve_artifact_path(artifact_root: Path, target_path: str, filename: str) -> Path:
    """
    Absolute destination of a merged artifact under the artifact root.

    Raises:
        ValidationError: If the resolved path is outside the artifact root
    """
    root = Path(artifact_root).resolve()
    destination = (root / validate_target_path(target_path) / validate_filename(filename)).resolve()
    try:
        destination.relative_to(root)
    except ValueError:
        raise ValidationError(f"Artifact path for {filename!r} is outside the upload root")
    return destination

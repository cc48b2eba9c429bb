# ============================================================================
# backend/sitewarden/services/archive_service.py
# ============================================================================
#
# Site Bundle Extraction for SiteWarden
#
# Turns an uploaded or fetched ZIP bundle into an ExtractedFileSet: a mapping
# from normalized relative path to file content tagged as text or base64,
# with an inferred media type. The set lives only for the duration of one
# analysis call.
#
# Also hosts the small path / encoding helpers shared with the analyzer:
#   - normalize_asset_path: strip query, fragment, leading "./" and "/"
#   - guess_media_type:     extension based media type with icon overrides
#   - decode_text:          read an ExtractedFile as UTF-8 text
#   - to_data_url:          encode an ExtractedFile as a data: URI
#
# ============================================================================

import base64
import binascii
import logging
import mimetypes
import zipfile
import zlib
from io import BytesIO
from typing import Mapping, Optional, Union

from ..exceptions import ArchiveError
from ..models import ExtractedFile, ExtractedFileSet, FileEncoding

logger = logging.getLogger("sitewarden.archive")

# mimetypes is platform dependent for these; browsers expect the values below
_MEDIA_TYPE_OVERRIDES = {
    ".ico": "image/x-icon",
    ".svg": "image/svg+xml",
    ".webp": "image/webp",
    ".htm": "text/html",
    ".html": "text/html",
    ".js": "text/javascript",
    ".css": "text/css",
    ".json": "application/json",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
}

DEFAULT_MEDIA_TYPE = "application/octet-stream"


def normalize_asset_path(raw_path: str) -> str:
    """
    Normalize a bundle path or an href into a lookup key.

    Removes any query string and fragment, converts backslashes, and strips
    leading "./" and "/" segments.

    Example:
        >>> normalize_asset_path("./img/icon.png?v=2#x")
        'img/icon.png'
    """
    if not raw_path:
        return ""
    path = raw_path.split("?", 1)[0].split("#", 1)[0].strip().replace("\\", "/")
    while path.startswith("./") or path.startswith("/"):
        path = path[2:] if path.startswith("./") else path[1:]
    return path


def guess_media_type(path: str) -> str:
    lowered = path.lower()
    dot = lowered.rfind(".")
    if dot != -1 and lowered[dot:] in _MEDIA_TYPE_OVERRIDES:
        return _MEDIA_TYPE_OVERRIDES[lowered[dot:]]
    media_type, _ = mimetypes.guess_type(lowered)
    return media_type or DEFAULT_MEDIA_TYPE


def coerce_file(path: str, value: Union[ExtractedFile, str, bytes]) -> ExtractedFile:
    """Accept plain strings / bytes where an ExtractedFile is expected."""
    if isinstance(value, ExtractedFile):
        return value
    if isinstance(value, bytes):
        return _file_from_bytes(path, value)
    return ExtractedFile(data=value, encoding=FileEncoding.TEXT, media_type=guess_media_type(path))


def coerce_file_set(files: Optional[Mapping[str, Union[ExtractedFile, str, bytes]]]) -> ExtractedFileSet:
    if not files:
        return {}
    return {path: coerce_file(path, value) for path, value in files.items()}


def decode_text(file: Optional[ExtractedFile]) -> str:
    """Return the UTF-8 text of a file; undecodable content reads as empty."""
    if file is None:
        return ""
    if file.encoding == FileEncoding.BASE64:
        try:
            return base64.b64decode(file.data).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError):
            logger.debug("Ignoring file with invalid base64 payload")
            return ""
    return file.data


def to_data_url(file: ExtractedFile, default_media_type: str = "image/x-icon") -> str:
    media_type = file.media_type or default_media_type
    if file.encoding == FileEncoding.BASE64:
        payload = file.data
    else:
        payload = base64.b64encode(file.data.encode("utf-8")).decode("ascii")
    return f"data:{media_type};base64,{payload}"


def _file_from_bytes(path: str, data: bytes) -> ExtractedFile:
    media_type = guess_media_type(path)
    try:
        return ExtractedFile(data=data.decode("utf-8"), encoding=FileEncoding.TEXT, media_type=media_type)
    except UnicodeDecodeError:
        return ExtractedFile(
            data=base64.b64encode(data).decode("ascii"),
            encoding=FileEncoding.BASE64,
            media_type=media_type,
        )


def extract_archive(data: bytes) -> ExtractedFileSet:
    """
    Decode a ZIP bundle into an ExtractedFileSet.

    Directory entries are skipped. Paths are normalized and unique; when two
    entries normalize to the same path the first one wins.

    Args:
        data: Raw ZIP bytes

    Returns:
        ExtractedFileSet in archive order

    Raises:
        ArchiveError: If the bytes are not a readable ZIP archive
    """
    try:
        archive = zipfile.ZipFile(BytesIO(data))
    except (zipfile.BadZipFile, ValueError) as e:
        raise ArchiveError(f"Invalid site bundle: {e}") from e

    files: ExtractedFileSet = {}
    with archive:
        for info in archive.infolist():
            if info.is_dir():
                continue
            path = normalize_asset_path(info.filename)
            if not path or path.endswith("/"):
                continue
            if path in files:
                logger.warning(f"Duplicate bundle path after normalization, keeping first: {path}")
                continue
            try:
                content = archive.read(info)
            except (zipfile.BadZipFile, zlib.error, RuntimeError, OSError) as e:
                raise ArchiveError(f"Could not read {info.filename} from bundle: {e}") from e
            files[path] = _file_from_bytes(path, content)

    logger.info(f"Extracted {len(files)} files from site bundle")
    return files

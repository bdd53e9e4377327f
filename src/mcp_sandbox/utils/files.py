"""File path and content helpers shared by the sandbox tools."""

import base64

FILE_PROTOCOL = "file://"

# Served by the container for directories; a text type so clients accept it
DIRECTORY_MIME_TYPE = "text/directory"
NATIVE_DIRECTORY_MIME_TYPE = "inode/directory"


def strip_protocol_from_file_path(path: str) -> str:
    """
    Remove a leading ``file://`` from a path, once.

    >>> strip_protocol_from_file_path("file:///workdir/a.txt")
    '/workdir/a.txt'
    >>> strip_protocol_from_file_path("/workdir/a.txt")
    '/workdir/a.txt'
    """
    if path.startswith(FILE_PROTOCOL):
        return path[len(FILE_PROTOCOL):]
    return path


def normalize_mime_type(content_type: str | None) -> str | None:
    """
    Reduce a Content-Type header to its MIME type.

    Parameters such as ``charset`` are dropped and the native directory type
    is mapped to ``text/directory``.
    """
    if not content_type:
        return None
    mime_type = content_type.split(";", 1)[0].strip().lower()
    if mime_type == NATIVE_DIRECTORY_MIME_TYPE:
        return DIRECTORY_MIME_TYPE
    return mime_type or None


def is_text_mime_type(mime_type: str | None) -> bool:
    """Whether content of this MIME type should be returned as text."""
    if mime_type is None:
        return False
    return mime_type.startswith("text/") or mime_type == DIRECTORY_MIME_TYPE


def file_to_base64(data: bytes) -> str:
    """Encode binary file content for transport in a text payload."""
    return base64.b64encode(data).decode("ascii")

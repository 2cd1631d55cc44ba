"""Image type detection from file contents."""

from pathlib import Path

DEFAULT_EXTENSION = ".png"

# (offset, signature, extension)
_SIGNATURES = [
    (0, b"\xff\xd8\xff", ".jpg"),
    (0, b"\x89PNG\r\n\x1a\n", ".png"),
    (0, b"GIF87a", ".gif"),
    (0, b"GIF89a", ".gif"),
    (8, b"WEBP", ".webp"),
]

CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def _match_signature(data: bytes) -> str | None:
    for offset, signature, extension in _SIGNATURES:
        if data[offset:offset + len(signature)] != signature:
            continue
        # WEBP lives inside a RIFF container
        if extension == ".webp" and not data.startswith(b"RIFF"):
            continue
        return extension
    return None


def detect_image_extension(data: bytes) -> str:
    """
    Sniff an image extension from its leading bytes.

    Falls back to .png for unrecognised data.
    """
    return _match_signature(data) or DEFAULT_EXTENSION


def detect_file_extension(path: Path) -> str:
    """Sniff the image extension of a file on disk."""
    with open(path, "rb") as f:
        return detect_image_extension(f.read(16))


def content_type_for(data: bytes, default: str = "image/jpeg") -> str:
    """Get a MIME type for image bytes."""
    extension = _match_signature(data)
    return CONTENT_TYPES[extension] if extension else default

"""
File validation service for optical reader uploads.

Provides security checks including:
- File size limits
- Empty file detection
- Text decoding (UTF-8, falling back to the Turkish Windows code page)
- Filename sanitization
"""

import hashlib
import re
from pathlib import Path
from typing import Tuple

from fastapi import HTTPException, UploadFile

# Encodings tried in order; scanner software on Turkish Windows writes cp1254
TEXT_ENCODINGS = ("utf-8-sig", "cp1254")
ALLOWED_EXTENSIONS = (".txt", ".dat", ".csv")


def decode_text_content(content: bytes) -> str:
    """
    Decode scanner file bytes to text.

    Args:
        content: Raw file bytes

    Returns:
        Decoded text

    Raises:
        ValueError: If the bytes contain NUL-heavy binary data or no encoding fits
    """
    if content.count(b"\x00") > len(content) // 10:
        raise ValueError("File looks binary, expected optical reader text")

    for encoding in TEXT_ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ValueError(f"File is not valid text in any of {', '.join(TEXT_ENCODINGS)}")


async def validate_text_upload(file: UploadFile, max_size: int) -> Tuple[str, str, str]:
    """
    Validate an uploaded scanner file and return its text, hash, and sanitized filename.

    Args:
        file: FastAPI UploadFile instance from multipart/form-data
        max_size: Largest accepted size in bytes

    Returns:
        Tuple of (text, sha256_hash, sanitized_filename)

    Raises:
        HTTPException: 400 for validation errors, 413 for file too large
    """
    content = await file.read()

    if len(content) == 0:
        raise HTTPException(status_code=400, detail="File is empty")

    if len(content) > max_size:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size is {max_size // 1024}KB"
        )

    try:
        text = decode_text_content(content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    sanitized_filename = sanitize_filename(file.filename or "upload.txt")
    file_hash = hashlib.sha256(content).hexdigest()

    return text, file_hash, sanitized_filename


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent path traversal attacks.

    Args:
        filename: Original filename from upload

    Returns:
        Sanitized filename safe for storage, keeping a known text extension
    """
    filename = Path(filename.replace("\\", "/")).name
    filename = filename.replace("..", "").replace("\0", "")
    filename = re.sub(r'[^a-zA-Z0-9._-]', '_', filename)

    if not filename or filename.startswith("."):
        filename = "upload" + filename

    if not filename.lower().endswith(ALLOWED_EXTENSIONS):
        filename = filename + ".txt"

    if len(filename) > 255:
        stem, dot, ext = filename.rpartition(".")
        filename = stem[:250] + dot + ext

    return filename

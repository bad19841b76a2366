# Overview: Service-layer operations for uploaded files (images and spreadsheets).

"""
Upload Service

Files live under UPLOAD_PATH:
- avatars/     profile pictures   avatar-{userId}-{ts}.jpg
- signatures/  e-signature images sig-{salesId}-{ts}.jpg

SECURITY:
- Images must be JPEG: extension, declared MIME type and the FF D8 FF magic
  bytes are all checked; a renamed PNG or script is rejected
- Size is capped at MAX_FILE_SIZE
- Stored names are generated server-side, never taken from the client
"""

from __future__ import annotations

import os
import time

from flask import current_app
from werkzeug.datastructures import FileStorage

from ..error_codes import ApiError


JPEG_MAGIC = b"\xff\xd8\xff"
IMAGE_EXTENSIONS = {".jpg", ".jpeg"}
IMAGE_MIME_TYPES = {"image/jpeg", "image/jpg", "image/pjpeg"}
XLSX_MIME_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/octet-stream",
}
ZIP_MAGIC = b"PK\x03\x04"

# Content type for files served back from UPLOAD_PATH
MIME_BY_EXTENSION = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def _extension(filename: str | None) -> str:
    return os.path.splitext(filename or "")[1].lower()


def _read_limited(file: FileStorage) -> bytes:
    limit = current_app.config["MAX_FILE_SIZE"]
    data = file.read(limit + 1)
    if len(data) > limit:
        raise ApiError("ERR_FILE_001")
    return data


def read_jpeg(file: FileStorage | None) -> bytes:
    """
    Validate an uploaded JPEG and return its bytes.

    Raises ApiError with ERR_FILE_00x codes.
    """
    if file is None or not file.filename:
        raise ApiError("ERR_FILE_004", "이미지 파일을 선택해주세요.")
    if _extension(file.filename) not in IMAGE_EXTENSIONS:
        raise ApiError("ERR_FILE_003")
    if file.mimetype and file.mimetype not in IMAGE_MIME_TYPES:
        raise ApiError("ERR_FILE_008")

    data = _read_limited(file)
    if not data.startswith(JPEG_MAGIC):
        raise ApiError("ERR_FILE_002")
    return data


def read_xlsx(file: FileStorage | None) -> bytes:
    """Validate an uploaded .xlsx (extension, MIME, zip signature) and return its bytes."""
    if file is None or not file.filename:
        raise ApiError("ERR_FILE_004", "파일을 선택해주세요.")
    if _extension(file.filename) != ".xlsx":
        raise ApiError("ERR_FILE_003", "엑셀 파일(.xlsx)만 업로드 가능합니다.")
    if file.mimetype and file.mimetype not in XLSX_MIME_TYPES:
        raise ApiError("ERR_FILE_008")

    data = _read_limited(file)
    if not data.startswith(ZIP_MAGIC):
        raise ApiError("ERR_FILE_002")
    return data


def store(subdir: str, filename: str, data: bytes) -> str:
    """Write bytes under UPLOAD_PATH/subdir and return the stored filename."""
    directory = os.path.join(current_app.config["UPLOAD_PATH"], subdir)
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, filename)
    try:
        with open(path, "wb") as fh:
            fh.write(data)
    except OSError:
        current_app.logger.exception("Failed to write upload %s", path)
        raise ApiError("ERR_FILE_005")
    return filename


def remove(subdir: str, filename: str | None) -> None:
    if not filename:
        return
    path = os.path.join(current_app.config["UPLOAD_PATH"], subdir, filename)
    if os.path.isfile(path):
        try:
            os.remove(path)
        except OSError:
            current_app.logger.warning("Could not remove upload %s", path)


def timestamped_name(prefix: str, owner_id: int, extension: str = ".jpg") -> str:
    return f"{prefix}-{owner_id}-{int(time.time() * 1000)}{extension}"


def save_avatar(user_id: int, file: FileStorage | None) -> str:
    data = read_jpeg(file)
    return store("avatars", timestamped_name("avatar", user_id), data)


def save_signature(sales_id: int, file: FileStorage | None) -> str:
    data = read_jpeg(file)
    return store("signatures", timestamped_name("sig", sales_id), data)


def mimetype_for(filename: str) -> str:
    return MIME_BY_EXTENSION.get(_extension(filename), "application/octet-stream")

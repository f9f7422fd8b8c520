"""Local-disk blob storage for e-filing uploads."""

from __future__ import annotations

import logging
import os
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import UploadFile

from hrdesk.config import efiling_max_bytes, upload_dir
from hrdesk.errors import AppError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024

ALLOWED_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-powerpoint",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "image/jpeg",
        "image/png",
        "image/gif",
        "text/plain",
        "application/zip",
        "application/x-rar-compressed",
    }
)


@dataclass
class StoredFile:
    file_name: str
    original_name: str
    content_type: str
    size: int
    path: str


def _stored_name(original_name: str) -> str:
    _, ext = os.path.splitext(original_name)
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{ext.lower()}"


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


class LocalFileStore:
    def __init__(self, base_dir: Optional[str] = None, max_bytes: Optional[int] = None) -> None:
        self.base_dir = base_dir or upload_dir()
        self.max_bytes = max_bytes if max_bytes is not None else efiling_max_bytes()

    async def save(self, upload: UploadFile) -> StoredFile:
        content_type = (upload.content_type or "").split(";")[0].strip()
        if content_type not in ALLOWED_MIME_TYPES:
            raise AppError(
                400,
                "invalid_file_type",
                "Invalid file type. Allowed: PDF, DOC, DOCX, XLS, XLSX, PPT, PPTX, JPG, PNG, GIF, TXT, ZIP, RAR",
            )

        os.makedirs(self.base_dir, exist_ok=True)
        original_name = os.path.basename((upload.filename or "upload.bin").replace("\\", "/"))
        file_name = _stored_name(original_name)
        path = os.path.join(self.base_dir, file_name)

        size = 0
        try:
            with open(path, "wb") as fh:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_bytes:
                        raise AppError(
                            400,
                            "file_too_large",
                            f"File exceeds the {self.max_bytes // (1024 * 1024)}MB limit",
                        )
                    fh.write(chunk)
        except BaseException:
            _discard(path)
            raise

        return StoredFile(file_name=file_name, original_name=original_name, content_type=content_type, size=size, path=path)

    def exists(self, path: Optional[str]) -> bool:
        return bool(path) and os.path.isfile(path)

    def delete(self, path: Optional[str]) -> None:
        if not path:
            return
        _discard(path)
        logger.info("efiling_blob_deleted path=%s", path)

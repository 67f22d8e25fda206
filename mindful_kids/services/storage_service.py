# mindful_kids/services/storage_service.py
import logging
import os
import re
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
from fastapi import Request, UploadFile

from ..crud import CRUDError, NotFoundError

logger = logging.getLogger(__name__)

CLINIC_APPLICATIONS_DIR = "clinic-applications"
CREDENTIALS_DIR = "credentials"

ALLOWED_MIME_TYPES = frozenset({
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/webp",
})

CHUNK_SIZE = 1024 * 1024
_SAFE_EXTENSION = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


class UploadRejected(CRUDError):
    status_code = 400


class InvalidPathError(CRUDError):
    status_code = 400


class DocumentStorage:
    """Uploaded documents on local disk, one sub-directory per document kind.

    Files are stored under random names; the client's filename only contributes
    its extension. Built once at startup from UPLOAD_DIR and kept on app.state.
    """

    def __init__(self, root, max_bytes: int = 10 * 1024 * 1024):
        self.root = Path(root).resolve()
        self.max_bytes = max_bytes

    def directory(self, subdir: str) -> Path:
        path = self.root / subdir
        path.mkdir(parents=True, exist_ok=True)
        return path

    @staticmethod
    def stored_name(original: Optional[str]) -> str:
        ext = os.path.splitext(original or "")[1]
        if not _SAFE_EXTENSION.match(ext):
            ext = ".bin"
        return f"{uuid.uuid4()}{ext.lower()}"

    async def save(self, upload: UploadFile, subdir: str) -> str:
        """Validate and write an upload, returning the generated filename."""
        if upload.content_type not in ALLOWED_MIME_TYPES:
            raise UploadRejected("File type not allowed. Use: PDF, JPEG, PNG, or WebP.")

        filename = self.stored_name(upload.filename)
        target = self.directory(subdir) / filename
        written = 0

        await upload.seek(0)
        async with aiofiles.open(target, "wb") as out_file:
            while chunk := await upload.read(CHUNK_SIZE):
                written += len(chunk)
                if written > self.max_bytes:
                    break
                await out_file.write(chunk)

        if written > self.max_bytes:
            target.unlink(missing_ok=True)
            raise UploadRejected(f"File too large. Maximum size is {self.max_bytes // (1024 * 1024)}MB.")
        if written == 0:
            target.unlink(missing_ok=True)
            raise UploadRejected("Uploaded file is empty.")

        logger.info(f"Stored upload {subdir}/{filename} ({written} bytes, {upload.content_type})")
        return filename

    def resolve(self, subdir: str, filename: str, invalid_message: str = "Invalid path.") -> Path:
        """Map a stored filename to an existing file inside ``subdir``.

        Names with separators or parent segments are rejected before the
        filesystem is touched, and the resolved path must stay under the root.
        """
        if not filename or filename != os.path.basename(filename) or ".." in filename \
                or "/" in filename or "\\" in filename:
            raise InvalidPathError(invalid_message)

        base = (self.root / subdir).resolve()
        path = (base / filename).resolve()
        if path.parent != base or not path.is_relative_to(self.root):
            raise InvalidPathError(invalid_message)
        if not path.is_file():
            raise NotFoundError("File not found.")
        return path

    def delete(self, subdir: str, filename: str) -> None:
        try:
            path = self.resolve(subdir, filename)
        except CRUDError:
            return
        path.unlink(missing_ok=True)


def get_storage(request: Request) -> DocumentStorage:
    return request.app.state.storage

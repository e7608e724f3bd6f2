from __future__ import annotations
import logging
import os
import random
import time
from pathlib import Path
from typing import BinaryIO, Iterable, Optional

from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from .errors import InvalidFileType, PayloadTooLarge
from .models import StoredUpload

logger = logging.getLogger("task_relay.uploads")

FILE_FIELD = "file"
CHUNK_SIZE = 64 * 1024


class UploadReceiver:
    def __init__(self, upload_dir: Path, max_bytes: int, allowed_extensions: Iterable[str]):
        self.upload_dir = Path(upload_dir)
        self.max_bytes = max_bytes
        self.allowed_extensions = frozenset(e.lower() for e in allowed_extensions)

    def check_extension(self, filename: str) -> str:
        ext = os.path.splitext(filename)[1]
        if ext.lower() not in self.allowed_extensions:
            raise InvalidFileType()
        return ext

    def unique_name(self, ext: str, field: str = FILE_FIELD) -> str:
        return f"{field}-{int(time.time() * 1000)}-{random.randint(0, 10**9)}{ext}"

    async def receive(self, upload: Optional[UploadFile], field: str = FILE_FIELD) -> Optional[StoredUpload]:
        if upload is None or not upload.filename:
            return None

        original_name = upload.filename
        ext = self.check_extension(original_name)
        if upload.size is not None and upload.size > self.max_bytes:
            raise PayloadTooLarge()

        await run_in_threadpool(self.upload_dir.mkdir, parents=True, exist_ok=True)
        stored_name = self.unique_name(ext, field)
        path = self.upload_dir / stored_name
        try:
            size = await run_in_threadpool(self._copy, upload.file, path)
        finally:
            await upload.close()

        logger.info("stored upload name=%s as=%s size=%d", original_name, path, size)
        return StoredUpload(path=str(path), original_name=original_name, stored_name=stored_name, size=size)

    def _copy(self, src: BinaryIO, dest: Path) -> int:
        src.seek(0)
        written = 0
        try:
            with open(dest, "wb") as out:
                while True:
                    chunk = src.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise PayloadTooLarge()
                    out.write(chunk)
        except BaseException:
            dest.unlink(missing_ok=True)
            raise
        return written

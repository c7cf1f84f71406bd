"""Avatar file storage on the local filesystem under MEDIA_ROOT/avatar."""

import logging
import os
import tempfile
from typing import BinaryIO

from accounts.core.errors import AccountValidationError, StorageError

logger = logging.getLogger(__name__)

AVATAR_SUBDIR = "avatar"
CHUNK_SIZE = 64 * 1024


class LocalAvatarStorage:
    """
    Write avatar uploads to disk.

    save() returns only after the bytes are flushed and renamed into place, so
    a caller recording the filename afterwards never points at a partial file.
    """

    def __init__(self, media_root: str, max_bytes: int) -> None:
        self.directory = os.path.join(media_root, AVATAR_SUBDIR)
        self.max_bytes = max_bytes

    def path_for(self, filename: str) -> str:
        return os.path.join(self.directory, filename)

    def save(self, filename: str, stream: BinaryIO) -> str:
        if os.path.basename(filename) != filename or filename in ("", ".", ".."):
            raise AccountValidationError("Invalid avatar filename.", {"file": "invalid filename"})
        try:
            os.makedirs(self.directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=".upload-")
        except OSError as e:
            raise StorageError(f"Could not prepare avatar storage: {e!s}", cause=e) from e

        written = 0
        try:
            with os.fdopen(fd, "wb") as out:
                while True:
                    chunk = stream.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise AccountValidationError(
                            f"Avatar must not exceed {self.max_bytes} bytes.",
                            {"file": "too large"},
                        )
                    out.write(chunk)
                out.flush()
                os.fsync(out.fileno())
            os.replace(tmp_path, self.path_for(filename))
        except AccountValidationError:
            _discard(tmp_path)
            raise
        except OSError as e:
            _discard(tmp_path)
            raise StorageError(f"Could not write avatar {filename}: {e!s}", cause=e) from e

        logger.info("Avatar stored: filename=%s bytes=%s", filename, written)
        return self.path_for(filename)


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.warning("Could not remove temporary upload %s", path)

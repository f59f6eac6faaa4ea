"""
Local disk storage for uploaded receipt images.
"""

import logging
import re
import uuid
from pathlib import Path
from typing import Optional

from .config import settings

logger = logging.getLogger(__name__)

# Matches JPEG image filenames.
VALID_FILENAME = re.compile(r"^\S+\.jpe?g$", re.IGNORECASE)

SERVING_PATH = "/serve-image"


class InvalidUpload(ValueError):
    """Raised when an uploaded file is not an acceptable receipt image."""


class LocalImageStore:
    """Stores receipt images under a directory, keyed by a generated reference."""

    def __init__(self, root_dir: Optional[str] = None, max_upload_size_bytes: Optional[int] = None):
        self.root_dir = Path(root_dir or settings.IMAGE_DIR)
        self.max_upload_size_bytes = max_upload_size_bytes or settings.MAX_UPLOAD_SIZE_BYTES
        self.logger = logger

    @staticmethod
    def is_valid_filename(filename: Optional[str]) -> bool:
        return bool(filename) and VALID_FILENAME.match(filename) is not None

    def save(self, filename: str, content: bytes) -> str:
        """Store an uploaded image and return its reference.

        Raises:
            InvalidUpload: If the file is not a JPEG, is empty or is too large
        """
        if not self.is_valid_filename(filename):
            raise InvalidUpload(f"Not a JPEG file: {filename!r}")
        if not content:
            raise InvalidUpload("Uploaded file is empty.")
        if len(content) > self.max_upload_size_bytes:
            raise InvalidUpload(
                f"Uploaded file exceeds the maximum size of {self.max_upload_size_bytes} bytes."
            )

        image_ref = f"{uuid.uuid4().hex}{Path(filename).suffix.lower()}"
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.path_for(image_ref).write_bytes(content)
        self.logger.info(f"Stored {filename} ({len(content)} bytes) as {image_ref}")
        return image_ref

    def path_for(self, image_ref: str) -> Path:
        # References are generated names, never paths
        return self.root_dir / Path(image_ref).name

    def serving_path(self, image_ref: str) -> str:
        return f"{SERVING_PATH}?blob-key={image_ref}"

    def delete(self, image_ref: str) -> None:
        path = self.path_for(image_ref)
        if path.exists():
            path.unlink()
            self.logger.info(f"Deleted image {image_ref}")

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Iterable, Optional

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from ..errors import ValidationError

logger = logging.getLogger(__name__)

IMAGE_URL_PREFIX = "/images/products"
POST_IMAGE_URL_PREFIX = "/images/posts"

# kind -> (file name stem, public url prefix)
_KINDS = {
    "product": ("product-request", IMAGE_URL_PREFIX),
    "post": ("post", POST_IMAGE_URL_PREFIX),
}


@dataclass(frozen=True)
class ImageUpload:
    filename: str
    content: bytes

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename or "")[1].lower().lstrip(".")

    @classmethod
    def from_file_storage(cls, fs: FileStorage) -> "ImageUpload":
        return cls(filename=secure_filename(fs.filename or ""), content=fs.read())


class ImageStorage:
    """Local-disk storage for product and post images.

    Files land in ``upload_dir`` as ``product-request-<owner>-<hex><ext>`` (or
    ``post-<owner>-<hex><ext>``) and are addressed by the URL
    ``/images/products/<name>`` (or ``/images/posts/<name>``).
    """

    def __init__(self, upload_dir: str, allowed_extensions: Iterable[str], max_bytes: int):
        self.upload_dir = upload_dir
        self.allowed_extensions = {e.lower().lstrip(".") for e in allowed_extensions}
        self.max_bytes = max_bytes

    @classmethod
    def from_config(cls, config) -> "ImageStorage":
        return cls(
            upload_dir=os.path.abspath(config["UPLOAD_DIR"]),
            allowed_extensions=config["ALLOWED_IMAGE_EXTENSIONS"],
            max_bytes=config["MAX_IMAGE_BYTES"],
        )

    def validate(self, upload: ImageUpload) -> None:
        if not upload.content:
            raise ValidationError("Empty file", details={"file": upload.filename})
        if upload.extension not in self.allowed_extensions:
            allowed = ", ".join(sorted(self.allowed_extensions))
            raise ValidationError(
                f"Unsupported file type; allowed: {allowed}",
                details={"file": upload.filename},
            )
        if len(upload.content) > self.max_bytes:
            raise ValidationError(
                f"File exceeds {self.max_bytes // (1024 * 1024)}MB",
                details={"file": upload.filename, "size": len(upload.content)},
            )

    def upload(self, upload: ImageUpload, owner_id: int, kind: str = "product") -> str:
        # Callers validate a whole batch first; this guards direct callers
        self.validate(upload)
        stem, url_prefix = _KINDS[kind]
        os.makedirs(self.upload_dir, exist_ok=True)
        name = f"{stem}-{owner_id}-{uuid.uuid4().hex}.{upload.extension}"
        path = os.path.join(self.upload_dir, name)
        with open(path, "wb") as out:
            out.write(upload.content)
        logger.info("Stored %s image %s (%d bytes) for %s", kind, name, len(upload.content), owner_id)
        return f"{url_prefix}/{name}"

    def delete(self, url: str) -> bool:
        path = self.path_for(os.path.basename(url or ""))
        if not path or not os.path.exists(path):
            return False
        try:
            os.remove(path)
        except OSError as exc:
            logger.warning("Could not delete image %s: %s", path, exc)
            return False
        logger.info("Deleted image %s", path)
        return True

    def path_for(self, name: str) -> Optional[str]:
        safe = secure_filename(name)
        if not safe or safe != name:
            return None
        return os.path.join(self.upload_dir, safe)


def get_storage() -> ImageStorage:
    return current_app.extensions["minishare.storage"]

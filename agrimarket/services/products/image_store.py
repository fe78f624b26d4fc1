# agrimarket/services/products/image_store.py
from __future__ import annotations

import os
import uuid
from datetime import datetime, timezone
from typing import Optional

from flask import current_app, has_request_context, request
from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename

from agrimarket.errors import ValidationError

ALLOWED_EXT = {".png", ".jpg", ".jpeg", ".gif", ".webp"}
URL_PREFIX = "/uploads"


class LocalImageStore:
    """
    Product images on local disk under UPLOAD_FOLDER/products/.
    References are relative URLs ("/uploads/products/<name>") and are
    turned into absolute URLs only when rendered.
    """

    subdir = "products"

    def __init__(self, root: Optional[str] = None):
        self.root = root or current_app.config["UPLOAD_FOLDER"]

    def _dir(self) -> str:
        path = os.path.join(self.root, self.subdir)
        os.makedirs(path, exist_ok=True)
        return path

    def store(self, file_storage) -> str:
        filename = secure_filename(file_storage.filename or "")
        ext = os.path.splitext(filename)[1].lower()
        if not filename or ext not in ALLOWED_EXT:
            raise ValidationError("Only image files are allowed")

        try:
            Image.open(file_storage.stream).verify()
        except (UnidentifiedImageError, OSError, SyntaxError):
            raise ValidationError("Only image files are allowed")
        file_storage.stream.seek(0)

        ts = int(datetime.now(timezone.utc).timestamp() * 1000)
        stored_name = f"product-{ts}-{uuid.uuid4().hex[:8]}{ext}"
        file_storage.save(os.path.join(self._dir(), stored_name))
        return f"{URL_PREFIX}/{self.subdir}/{stored_name}"

    def path_for(self, reference: str) -> Optional[str]:
        if not reference or not reference.startswith(f"{URL_PREFIX}/"):
            return None
        relative = reference[len(URL_PREFIX) + 1:]
        root = os.path.abspath(self.root)
        path = os.path.abspath(os.path.join(root, relative))
        if os.path.commonpath([root, path]) != root:
            return None
        return path

    def delete(self, reference: Optional[str]) -> bool:
        path = self.path_for(reference or "")
        if not path or not os.path.isfile(path):
            return False
        try:
            os.remove(path)
        except OSError as e:
            current_app.logger.warning("Could not delete image %s: %s", reference, e)
            return False
        return True


def absolute_url(reference: Optional[str]) -> str:
    if not reference:
        return ""
    if reference.startswith("http"):
        return reference
    if not has_request_context():
        return reference
    return request.host_url.rstrip("/") + reference

import base64
import binascii
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from pathlib import Path
from uuid import uuid4

from flask import current_app
from PIL import Image, UnidentifiedImageError
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from rentaldesk.errors import AppError

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "webp"}


class MediaService:
    """Key-addressed blob storage for photos, backed by the local upload directory."""

    @staticmethod
    def _root():
        return Path(current_app.config["UPLOAD_DIR"]).resolve()

    @staticmethod
    def _path_for(root, key):
        path = (root / key).resolve()
        if root not in path.parents:
            raise AppError("Invalid media key.", 400)
        return path

    @staticmethod
    def _is_allowed(filename):
        return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS

    @staticmethod
    def _verify_image(data):
        # Verify actual image bytes to avoid extension spoofing.
        try:
            Image.open(BytesIO(data)).verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise AppError("Invalid image file.", 400) from exc

    @classmethod
    def upload(cls, data: bytes, key: str):
        path = cls._path_for(cls._root(), key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return key

    @staticmethod
    def _read(root, key):
        path = MediaService._path_for(root, key)
        if not path.is_file():
            raise AppError(f"Media {key} not found.", 404)
        return path.read_bytes()

    @classmethod
    def download(cls, key: str):
        return cls._read(cls._root(), key)

    @classmethod
    def download_many(cls, keys, max_workers=5):
        """Fetch several blobs concurrently and return them keyed by media key."""
        root = cls._root()
        unique_keys = [key for key in dict.fromkeys(keys) if key]
        if not unique_keys:
            return {}
        with ThreadPoolExecutor(max_workers=min(max_workers, len(unique_keys))) as pool:
            payloads = list(pool.map(lambda key: cls._read(root, key), unique_keys))
        return dict(zip(unique_keys, payloads))

    @classmethod
    def save_image(cls, storage: FileStorage, prefix: str, name: str):
        if not storage or not storage.filename:
            return None

        filename = secure_filename(storage.filename)
        if not filename or not cls._is_allowed(filename):
            raise AppError("Unsupported image format.", 400)

        data = storage.read()
        cls._verify_image(data)

        extension = filename.rsplit(".", 1)[1].lower()
        return cls.upload(data, f"{prefix}{name}-{uuid4().hex}.{extension}")

    @classmethod
    def save_camera_data_url(cls, data_url: str, prefix: str, name: str):
        if not data_url or "base64," not in data_url:
            return None
        header, encoded = data_url.split("base64,", 1)
        if "image/jpeg" in header:
            extension = "jpg"
        elif "image/webp" in header:
            extension = "webp"
        else:
            extension = "png"
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise AppError("Invalid camera image payload.", 400) from exc
        cls._verify_image(data)
        return cls.upload(data, f"{prefix}{name}-{uuid4().hex}.{extension}")

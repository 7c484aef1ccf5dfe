"""
Setu - Upload Relay
Forwards attachments (images, PDF e-books) to an object store and hands back
the stored locator and public URL. Local disk by default, Cloudinary when configured.
"""
import io
import logging
import uuid
from pathlib import Path
from typing import NamedTuple

from setu.config import (
    UPLOAD_DIR, PUBLIC_BASE_URL, USE_CLOUDINARY, CLOUDINARY_URL, CLOUDINARY_CLOUD_NAME,
    CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET, UPLOAD_FOLDER_PREFIX,
    MAX_UPLOAD_BYTES, ALLOWED_IMAGE_EXTS, MAX_EBOOK_BYTES, ALLOWED_EBOOK_EXTS, UPLOAD_MEDIA_TYPES,
)
from setu.errors import AppError, ForbiddenError, InternalError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class StoredObject(NamedTuple):
    locator: str
    url: str


class UploadKind(NamedTuple):
    """What a store call accepts. `resource_type` is the Cloudinary bucket."""
    exts: frozenset
    max_bytes: int
    resource_type: str


IMAGE = UploadKind(frozenset(ALLOWED_IMAGE_EXTS), MAX_UPLOAD_BYTES, "image")
DOCUMENT = UploadKind(frozenset(ALLOWED_EBOOK_EXTS), MAX_EBOOK_BYTES, "raw")


def validate_upload(filename: str, content: bytes, kind: UploadKind = IMAGE) -> str:
    """Returns the lower-cased extension. Rejects unknown types, empty and oversized files."""
    ext = Path(filename or "").suffix.lower()
    if ext not in kind.exts:
        raise ValidationError(f"Unsupported file type '{ext or filename}'")
    if not content:
        raise ValidationError("Empty file")
    if len(content) > kind.max_bytes:
        raise ValidationError(f"File too large (max {kind.max_bytes // (1024 * 1024)} MB)")
    return ext


def validate_image(filename: str, content: bytes) -> str:
    return validate_upload(filename, content, IMAGE)


def _safe_segment(value: str) -> str:
    if not value or ".." in value or "/" in value or "\\" in value:
        raise ValidationError("Invalid filename")
    return value


class ObjectStore:
    """Relay interface: store(content, filename, folder, kind) -> StoredObject, delete(locator, kind)."""

    def store(self, content: bytes, filename: str, folder: str, kind: UploadKind = IMAGE) -> StoredObject:
        raise NotImplementedError

    def delete(self, locator: str, kind: UploadKind = IMAGE):
        raise NotImplementedError


def discard(store: ObjectStore, locators: list, kind: UploadKind = IMAGE):
    """Best-effort delete; a failure is logged and does not stop the rest."""
    for locator in locators:
        if not locator:
            continue
        try:
            store.delete(locator, kind)
        except AppError as e:
            logger.warning("Could not delete stored object %s: %s", locator, e.detail)


def store_all(store: ObjectStore, files: list, folder: str, kind: UploadKind = IMAGE) -> list:
    """Store every (filename, content) pair or none of them.

    The whole batch is validated before anything is written; if a later store
    call fails, the objects already written are discarded and the error re-raised.
    """
    for filename, content in files:
        validate_upload(filename, content, kind)
    stored = []
    try:
        for filename, content in files:
            stored.append(store.store(content, filename, folder, kind))
    except Exception:
        discard(store, [obj.locator for obj in stored], kind)
        raise
    return stored


# ============================================================
# LOCAL DISK
# ============================================================
class LocalObjectStore(ObjectStore):
    """Files under `root/<folder>/`, served back by GET /uploads/{folder}/{filename}."""

    def __init__(self, root=None, base_url: str = None):
        self.root = Path(root or UPLOAD_DIR)
        self.base_url = PUBLIC_BASE_URL if base_url is None else base_url.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def store(self, content: bytes, filename: str, folder: str, kind: UploadKind = IMAGE) -> StoredObject:
        ext = validate_upload(filename, content, kind)
        folder = _safe_segment(folder)
        target = self.root / folder
        target.mkdir(parents=True, exist_ok=True)
        name = f"{uuid.uuid4().hex}{ext}"
        try:
            (target / name).write_bytes(content)
        except OSError as e:
            logger.error("Local upload of %s failed: %s", filename, e)
            raise InternalError("Upload failed")
        locator = f"{folder}/{name}"
        return StoredObject(locator, f"{self.base_url}/uploads/{locator}")

    def resolve(self, folder: str, filename: str) -> Path:
        """Path of a stored file, refusing anything outside the upload root."""
        fp = self.root / _safe_segment(folder) / _safe_segment(filename)
        if not fp.resolve().is_relative_to(self.root.resolve()):
            raise ForbiddenError("Access denied")
        if not fp.is_file():
            raise NotFoundError("File not found")
        return fp

    def delete(self, locator: str, kind: UploadKind = IMAGE):
        folder, _, filename = (locator or "").partition("/")
        try:
            self.resolve(folder, filename).unlink()
        except NotFoundError:
            logger.warning("Delete of missing upload %s ignored", locator)

    @staticmethod
    def media_type(path: Path) -> str:
        return UPLOAD_MEDIA_TYPES.get(path.suffix.lower(), "application/octet-stream")


# ============================================================
# CLOUDINARY
# ============================================================
class CloudinaryObjectStore(ObjectStore):
    """Hosted store. Folders are namespaced under UPLOAD_FOLDER_PREFIX."""

    def __init__(self, prefix: str = UPLOAD_FOLDER_PREFIX):
        import cloudinary
        import cloudinary.uploader
        self._uploader = cloudinary.uploader
        if CLOUDINARY_URL:
            cloudinary.config(cloudinary_url=CLOUDINARY_URL, secure=True)
        else:
            cloudinary.config(cloud_name=CLOUDINARY_CLOUD_NAME, api_key=CLOUDINARY_API_KEY,
                              api_secret=CLOUDINARY_API_SECRET, secure=True)
        self.prefix = prefix.strip("/")
        logger.info("Using Cloudinary object store (prefix %s)", self.prefix)

    def store(self, content: bytes, filename: str, folder: str, kind: UploadKind = IMAGE) -> StoredObject:
        validate_upload(filename, content, kind)
        try:
            result = self._uploader.upload(io.BytesIO(content), folder=f"{self.prefix}/{folder}",
                                           resource_type=kind.resource_type,
                                           use_filename=False, unique_filename=True)
        except Exception as e:
            logger.error("Cloudinary upload of %s failed: %s", filename, e)
            raise InternalError("Upload failed")
        return StoredObject(result["public_id"], result["secure_url"])

    def delete(self, locator: str, kind: UploadKind = IMAGE):
        try:
            self._uploader.destroy(locator, resource_type=kind.resource_type)
        except Exception as e:
            logger.error("Cloudinary delete of %s failed: %s", locator, e)
            raise InternalError("Delete failed")


def open_object_store() -> ObjectStore:
    return CloudinaryObjectStore() if USE_CLOUDINARY else LocalObjectStore()

"""Secure image handling for complaint photos and completion evidence."""
import hashlib
import io
import os
import time
import uuid
from typing import Dict, Optional, Tuple

from PIL import Image, UnidentifiedImageError
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

ALLOWED_IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "webp"}
DEFAULT_MAX_IMAGE_BYTES = 8 * 1024 * 1024  # 8 MB

# Pillow format name -> extensions it may be uploaded under
_FORMAT_EXTENSIONS = {
    "JPEG": {"jpg", "jpeg"},
    "PNG": {"png"},
    "WEBP": {"webp"},
}

_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}


def _fail_if(condition: bool, message: str) -> None:
    if condition:
        raise ValueError(message)


def mime_type_for(ext: str) -> str:
    return _MIME_TYPES.get(ext, "application/octet-stream")


def compute_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def validate_image_file(file: FileStorage, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> Tuple[bytes, str]:
    _fail_if(not file, "No file provided")
    filename = secure_filename(file.filename or "")
    _fail_if(not filename or "." not in filename, "Unsupported file name")
    ext = filename.rsplit(".", 1)[1].lower()
    _fail_if(ext not in ALLOWED_IMAGE_EXTENSIONS, "File type not allowed")

    file.stream.seek(0, os.SEEK_END)
    size = file.stream.tell()
    file.stream.seek(0)
    _fail_if(size == 0, "Empty file")
    _fail_if(size > max_bytes, "File exceeds size limits")

    content = file.read()
    _fail_if(len(content) > max_bytes, "File exceeds size limits")

    try:
        with Image.open(io.BytesIO(content)) as img:
            detected = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise ValueError("Invalid image data") from exc
    _fail_if(ext not in _FORMAT_EXTENSIONS.get(detected or "", set()), "Invalid image data")

    file.stream.seek(0)
    return content, ext


def save_image_bytes(image_bytes: bytes, upload_dir: str, extension: str) -> Tuple[str, str]:
    os.makedirs(upload_dir, exist_ok=True)
    unique_name = f"{uuid.uuid4().hex}.{extension}"
    safe_name = secure_filename(unique_name)
    path = os.path.join(upload_dir, safe_name)
    with open(path, "wb") as f:
        f.write(image_bytes)
    return path, safe_name


def persist_image(file: FileStorage, upload_dir: str, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> Dict:
    """Validate an upload and park it on disk so a later request can forward it to the backend."""
    image_bytes, ext = validate_image_file(file, max_bytes=max_bytes)
    stored_path, stored_name = save_image_bytes(image_bytes, upload_dir, ext)
    return {
        "path": stored_path,
        "file_name": stored_name,
        "original_name": secure_filename(file.filename or stored_name),
        "extension": ext,
        "mime_type": mime_type_for(ext),
        "image_hash": compute_hash(image_bytes),
    }


def resolve_stored_image(upload_dir: str, file_name: Optional[str]) -> Optional[str]:
    """Map a stored token back to a path inside `upload_dir`, or None when it is unsafe or gone."""
    if not file_name:
        return None
    safe_name = secure_filename(file_name)
    if safe_name != file_name:
        return None
    path = os.path.join(upload_dir, safe_name)
    return path if os.path.isfile(path) else None


def load_stored_image(upload_dir: str, file_name: Optional[str], original_name: Optional[str] = None) -> Optional[tuple]:
    """Return a `(name, bytes, mime)` file part for a parked upload."""
    path = resolve_stored_image(upload_dir, file_name)
    if path is None:
        return None
    with open(path, "rb") as handle:
        content = handle.read()
    ext = path.rsplit(".", 1)[-1].lower()
    return (original_name or os.path.basename(path), content, mime_type_for(ext))


def discard_stored_image(upload_dir: str, file_name: Optional[str]) -> None:
    path = resolve_stored_image(upload_dir, file_name)
    if path is not None:
        os.remove(path)


def sweep_stale_images(upload_dir: str, max_age_seconds: float, now: Optional[float] = None) -> int:
    """Delete parked uploads older than `max_age_seconds`; returns how many were removed."""
    if not os.path.isdir(upload_dir):
        return 0
    cutoff = (time.time() if now is None else now) - max_age_seconds
    removed = 0
    with os.scandir(upload_dir) as entries:
        for entry in entries:
            if entry.is_file() and entry.stat().st_mtime < cutoff:
                os.remove(entry.path)
                removed += 1
    return removed


def image_part(file: FileStorage, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> tuple:
    """Validate an upload and return it as a `(name, bytes, mime)` file part for forwarding."""
    image_bytes, ext = validate_image_file(file, max_bytes=max_bytes)
    name = secure_filename(file.filename or "") or f"{uuid.uuid4().hex}.{ext}"
    return (name, image_bytes, mime_type_for(ext))

"""
Local storage for uploaded files.

Files are written below config.UPLOAD_FOLDER and referenced in the database
by their public path, e.g. "uploads/screenshots/3f2c..._demo.png", which the
gateway serves under /uploads/.
"""

import logging
import uuid
from pathlib import Path
from typing import Optional

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from backend import config

PUBLIC_PREFIX = "uploads"

IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
DOCUMENT_EXTENSIONS = {"pdf", "doc", "docx"}

# kind -> allowed extensions
UPLOAD_KINDS = {
    "screenshots": IMAGE_EXTENSIONS,
    "profile_images": IMAGE_EXTENSIONS,
    "resumes": DOCUMENT_EXTENSIONS,
}


class UploadError(ValueError):
    """Raised when an uploaded file is missing or not an accepted type."""


def upload_root() -> Path:
    return Path(config.UPLOAD_FOLDER).resolve()


def has_file(file: Optional[FileStorage]) -> bool:
    return bool(file and file.filename)


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def save_upload(file: FileStorage, kind: str) -> str:
    """
    Save an uploaded file and return its public reference.

    Raises:
        UploadError: If the file is empty or its extension is not allowed for `kind`.
    """
    allowed = UPLOAD_KINDS[kind]
    if not has_file(file):
        raise UploadError("No file provided")

    filename = secure_filename(file.filename)
    ext = _extension(filename)
    if ext not in allowed:
        raise UploadError(f"File type must be one of: {', '.join(sorted(allowed))}")

    target_dir = upload_root() / kind
    target_dir.mkdir(parents=True, exist_ok=True)

    stored_name = f"{uuid.uuid4().hex}_{filename}"
    file.save(str(target_dir / stored_name))
    logging.info(f"[Uploads] Saved {kind}/{stored_name}")

    return f"{PUBLIC_PREFIX}/{kind}/{stored_name}"


def resolve_upload(ref: Optional[str]) -> Optional[Path]:
    """Map a stored reference back to a path inside the upload folder, or None."""
    if not ref or not ref.startswith(f"{PUBLIC_PREFIX}/"):
        return None

    root = upload_root()
    path = (root / ref[len(PUBLIC_PREFIX) + 1:]).resolve()
    if root not in path.parents:
        return None
    return path


def delete_upload(ref: Optional[str]) -> bool:
    """
    Remove a previously saved upload.

    Returns:
        bool: True if a file was removed. References outside the upload
        folder (e.g. external URLs) and already-missing files are ignored.
    """
    path = resolve_upload(ref)
    if path is None:
        return False

    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError:
        logging.exception(f"[Uploads] Could not remove {ref}")
        return False

    logging.info(f"[Uploads] Removed {ref}")
    return True

import logging
import os
import random
import re
import time

from fastapi import UploadFile

from . import config
from .errors import MissingFile, NotFound, ValidationError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024
UPLOAD_URL_PREFIX = "/uploads/"


def ensure_upload_dir():
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)


def safe_original_name(filename: str) -> str:
    name = os.path.basename((filename or "").replace("\\", "/"))
    name = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("._")
    return name or "document.pdf"


def unique_filename(original: str) -> str:
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{unique_suffix}-{safe_original_name(original)}"


def too_large_error() -> ValidationError:
    return ValidationError(
        f"Le fichier dépasse la taille maximale de {config.MAX_UPLOAD_SIZE_MB} Mo"
    )


async def save_pdf(upload: UploadFile):
    """Write an uploaded PDF to the upload directory.

    The file is streamed in chunks and dropped as soon as it grows past the
    size limit, so nothing is left behind for rejected uploads. Returns the
    public URL and the original filename.
    """
    if upload is None or not upload.filename:
        raise MissingFile()
    if upload.content_type not in config.ALLOWED_CONTENT_TYPES:
        raise ValidationError("Seuls les fichiers PDF sont autorisés")

    ensure_upload_dir()
    filename = unique_filename(upload.filename)
    path = os.path.join(config.UPLOAD_DIR, filename)

    size = 0
    too_large = False
    try:
        with open(path, "wb") as out:
            while True:
                chunk = await upload.read(CHUNK_SIZE)
                if not chunk:
                    break
                size += len(chunk)
                if size > config.MAX_UPLOAD_SIZE:
                    too_large = True
                    break
                out.write(chunk)
    except Exception:
        logger.warning("Upload %s failed after %d bytes, removing partial file", filename, size)
        os.remove(path)
        raise

    if too_large:
        os.remove(path)
        raise too_large_error()
    if size == 0:
        os.remove(path)
        raise MissingFile()

    logger.info("Stored upload %s (%d bytes)", filename, size)
    return UPLOAD_URL_PREFIX + filename, upload.filename


def resolve_upload(filename: str) -> str:
    """Absolute path of a stored upload; NotFound for anything outside the directory."""
    if not filename or filename != os.path.basename(filename) or filename.startswith("."):
        raise NotFound("Fichier non trouvé")
    path = os.path.join(config.UPLOAD_DIR, filename)
    if not os.path.isfile(path):
        raise NotFound("Fichier non trouvé")
    return path


def remove_upload(pdf_url: str):
    """Best-effort removal of a stored file; failures are only logged."""
    if not pdf_url or not pdf_url.startswith(UPLOAD_URL_PREFIX):
        return
    filename = pdf_url[len(UPLOAD_URL_PREFIX):]
    path = os.path.join(config.UPLOAD_DIR, os.path.basename(filename))
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning("Upload %s was already gone", filename)
    except OSError:
        logger.exception("Could not remove upload %s", filename)

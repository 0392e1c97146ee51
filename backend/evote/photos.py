from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)
UPLOADS_PREFIX = "/uploads/"


def normalize_photo_path(value: Optional[object]) -> Optional[str]:
    """Blank -> None, http(s) URLs kept, anything else becomes a rooted path."""
    if value is None:
        return None
    trimmed = str(value).strip()
    if not trimmed:
        return None
    if _ABSOLUTE_URL.match(trimmed) or trimmed.startswith("/"):
        return trimmed
    return f"/{trimmed}"


def build_absolute_photo_url(value: Optional[str], base_url: Optional[str]) -> Optional[str]:
    normalized = normalize_photo_path(value)
    if not normalized:
        return None
    if _ABSOLUTE_URL.match(normalized) or not base_url:
        return normalized
    return f"{base_url.rstrip('/')}{normalized}"


def delete_uploaded_file(photo_url: Optional[str], uploads_dir: str) -> bool:
    """
    Best-effort removal of a stored candidate photo.

    Only ``/uploads/...`` references are ours to delete. Failures are logged,
    never raised.
    """
    if not photo_url or not photo_url.startswith(UPLOADS_PREFIX):
        return False

    root = Path(uploads_dir).resolve()
    target = (root / photo_url[len(UPLOADS_PREFIX):]).resolve()
    if root not in target.parents:
        logger.warning("Refusing to delete photo outside uploads dir: %s", photo_url)
        return False

    try:
        target.unlink()
    except FileNotFoundError:
        logger.info("Photo already gone: %s", target)
        return False
    except OSError:
        logger.exception("Failed to delete photo %s", target)
        return False
    logger.info("Deleted photo %s", target)
    return True


__all__ = ["normalize_photo_path", "build_absolute_photo_url", "delete_uploaded_file"]

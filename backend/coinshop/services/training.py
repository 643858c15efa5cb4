"""
CoinShop - Grading Training Data Store

File-based collection of labelled coin photos used to build grading
reference sets.

Layout:
    {root}/metadata.json                       list of entries
    {root}/{type}/{date}-{mint}-{grade}-{ts}.{ext}
"""

import json
import logging
import re
import time
from collections import Counter
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional, Union

from coinshop.core.clock import utcnow
from coinshop.core.config import settings
from coinshop.core.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

METADATA_FILE = "metadata.json"
ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "gif"}

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class TrainingEntry:
    image: str  # path relative to the store root
    type: str
    date: str
    mint: str
    grade: str
    notes: str
    captured_at: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _safe_segment(value: str, field_name: str) -> str:
    cleaned = _UNSAFE.sub("-", value.strip()).strip("-.")
    if not cleaned:
        raise ValidationError(f"Invalid {field_name}", details={"field": field_name})
    return cleaned


class TrainingDataStore:
    """Grading photo store rooted at ``settings.training_data_dir``."""

    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.root = Path(root or settings.training_data_dir)

    @property
    def metadata_path(self) -> Path:
        return self.root / METADATA_FILE

    def list_entries(self) -> list[TrainingEntry]:
        """All entries; a missing or corrupt metadata file reads as empty."""
        if not self.metadata_path.exists():
            return []
        try:
            raw = json.loads(self.metadata_path.read_text(encoding="utf-8"))
            return [TrainingEntry(**item) for item in raw]
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to load training metadata: {e}")
            return []

    def _save(self, entries: list[TrainingEntry]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        self.metadata_path.write_text(
            json.dumps([e.to_dict() for e in entries], indent=2),
            encoding="utf-8",
        )

    def add_entry(
        self,
        image: Optional[bytes],
        filename: Optional[str],
        type: Optional[str],
        date: Optional[str],
        grade: Optional[str],
        mint: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> TrainingEntry:
        """
        Save a labelled photo and append its metadata entry.

        Raises:
            ValidationError: missing image/type/date/grade or bad extension
        """
        if not image or not type or not date or not grade:
            raise ValidationError("Missing required fields: image, type, date, grade")

        ext = (filename or "").rsplit(".", 1)[-1].lower() if "." in (filename or "") else "jpg"
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(f"Unsupported image type '.{ext}'")

        type_dir = _safe_segment(type, "type")
        mint_label = _safe_segment(mint, "mint") if mint else "P"
        name = (
            f"{_safe_segment(date, 'date')}-{mint_label}-"
            f"{_safe_segment(grade, 'grade')}-{int(time.time() * 1000)}.{ext}"
        )

        target_dir = self.root / type_dir
        target_dir.mkdir(parents=True, exist_ok=True)
        (target_dir / name).write_bytes(image)

        entry = TrainingEntry(
            image=f"{type_dir}/{name}",
            type=type,
            date=date,
            mint=mint_label,
            grade=grade,
            notes=notes or "",
            captured_at=utcnow().date().isoformat(),
        )
        entries = self.list_entries()
        entries.append(entry)
        self._save(entries)

        logger.info(f"Saved training image {entry.image}")
        return entry

    def image_path(self, relative: str) -> Path:
        """Resolve an entry's image path, refusing paths outside the store."""
        root = self.root.resolve()
        path = (root / relative).resolve()
        if root not in path.parents or not path.is_file():
            raise NotFoundError("Image not found")
        return path

    def stats(self) -> dict[str, Any]:
        """Entry counts overall, by coin type and by grade."""
        entries = self.list_entries()
        return {
            "total": len(entries),
            "by_type": dict(Counter(e.type for e in entries)),
            "by_grade": dict(Counter(e.grade for e in entries)),
        }

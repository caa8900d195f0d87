import re
import secrets
import unicodedata

from sqlalchemy import select
from sqlalchemy.orm import Session

from recipe_share.app.db import models

_MAX_ATTEMPTS = 5


def slugify(text: str) -> str:
    """Lower-case ASCII slug with hyphens; "recipe" when nothing usable remains."""
    ascii_text = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-zA-Z0-9]+", "-", ascii_text).strip("-").lower()
    return slug or "recipe"


def _slug_taken(db: Session, slug: str) -> bool:
    return db.scalars(select(models.Recipe.id).where(models.Recipe.slug == slug)).first() is not None


def unique_slug(db: Session, title: str) -> str:
    base = slugify(title)
    if not _slug_taken(db, base):
        return base
    for _ in range(_MAX_ATTEMPTS):
        candidate = f"{base}-{secrets.token_hex(3)}"
        if not _slug_taken(db, candidate):
            return candidate
    return f"{base}-{secrets.token_hex(8)}"

"""Slugs and other small text helpers shared by the content services."""

import math
import re
from typing import Any, Optional

from sqlalchemy.orm import Session

WORDS_PER_MINUTE = 200

_NON_WORD = re.compile(r"[^\w\s-]")
_SEPARATORS = re.compile(r"[\s_-]+")
_TAGS = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")


def slugify(text: str) -> str:
    slug = _NON_WORD.sub("", (text or "").lower().strip())
    return _SEPARATORS.sub("-", slug).strip("-")


def unique_slug(db: Session, model: Any, text: str, exclude_id: Optional[str] = None) -> str:
    """``slugify(text)``, suffixed ``-1``, ``-2``, ... until no other row of ``model`` holds it."""
    base = slugify(text) or "untitled"

    def taken(candidate: str) -> bool:
        query = db.query(model.id).filter(model.slug == candidate)
        if exclude_id:
            query = query.filter(model.id != exclude_id)
        return query.first() is not None

    slug, counter = base, 0
    while taken(slug):
        counter += 1
        slug = f"{base}-{counter}"
    return slug


def strip_html(html: Optional[str]) -> str:
    return _WHITESPACE.sub(" ", _TAGS.sub(" ", html or "")).strip()


def reading_time(content: str) -> int:
    """Minutes at 200 words per minute, never less than one."""
    words = len((content or "").split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))

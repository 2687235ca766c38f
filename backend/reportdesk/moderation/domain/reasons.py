"""Reason categories and description clean-up for report filings."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from reportdesk.moderation.domain.exceptions import ValidationFailure

_SCRIPT_BLOCK_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"</?[A-Za-z!][^>]*>")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize_description(value: str) -> str:
    """Strip markup from a free-text reason.

    Script and style blocks are dropped with their content, every other tag is
    removed while its inner text is kept. Surrounding whitespace is trimmed.
    """

    text = _SCRIPT_BLOCK_RE.sub("", value or "")
    text = _TAG_RE.sub("", text)
    text = _CONTROL_RE.sub("", text)
    return text.strip()


@dataclass(frozen=True)
class ReasonCatalog:
    """Closed set of reason categories accepted for filings."""

    categories: frozenset[str]
    max_description_length: int = 1000

    @classmethod
    def from_names(cls, names: Iterable[str], *, max_description_length: int = 1000) -> "ReasonCatalog":
        categories = frozenset(name.strip() for name in names if name and name.strip())
        if not categories:
            raise ValueError("reason catalog requires at least one category")
        return cls(categories=categories, max_description_length=max_description_length)

    def __contains__(self, category: object) -> bool:
        return category in self.categories

    def validate_category(self, category: str) -> str:
        if category not in self.categories:
            raise ValidationFailure("invalid_reason_category")
        return category

    def clean_description(self, description: str) -> str:
        cleaned = sanitize_description(description)
        if not cleaned:
            raise ValidationFailure("reason_description_required")
        if len(cleaned) > self.max_description_length:
            raise ValidationFailure("reason_description_too_long")
        return cleaned

"""
Reference Vocabulary — the five NATO levels and the national mapping rules.

Every translation is routed through this one vocabulary (hub and spoke): a
nation joins by publishing a single schema that maps its own words to and
from these five levels, never a table per partner nation.

The level table is an ordered tuple. Matching walks it from the lowest level
to the highest and the first match wins, so if a schema ever gives two
levels identical text the lower level is chosen.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from rosetta.errors import UnknownClassification, UnknownReferenceLevel


class ReferenceLevel(str, enum.Enum):
    """Canonical reference levels. Top secret is COSMIC, not NATO."""

    UNCLASSIFIED = "NATO UNCLASSIFIED"
    RESTRICTED = "NATO RESTRICTED"
    CONFIDENTIAL = "NATO CONFIDENTIAL"
    SECRET = "NATO SECRET"
    TOP_SECRET = "COSMIC TOP SECRET"


@dataclass(frozen=True)
class LevelRule:
    """One row of the level table."""

    level: ReferenceLevel
    to_field: str
    from_field: str
    synonyms: tuple[str, ...]

    @property
    def label(self) -> str:
        return self.level.value

    def accepts(self, reference_text: str) -> bool:
        return reference_text == self.label or reference_text in self.synonyms


LEVEL_TABLE: tuple[LevelRule, ...] = (
    LevelRule(
        ReferenceLevel.UNCLASSIFIED,
        "to_nato_unclassified", "from_nato_unclassified",
        ("UNCLASSIFIED",),
    ),
    LevelRule(
        ReferenceLevel.RESTRICTED,
        "to_nato_restricted", "from_nato_restricted",
        ("RESTRICTED",),
    ),
    LevelRule(
        ReferenceLevel.CONFIDENTIAL,
        "to_nato_confidential", "from_nato_confidential",
        ("CONFIDENTIAL",),
    ),
    LevelRule(
        ReferenceLevel.SECRET,
        "to_nato_secret", "from_nato_secret",
        ("SECRET",),
    ),
    LevelRule(
        ReferenceLevel.TOP_SECRET,
        "to_nato_top_secret", "from_nato_top_secret",
        ("TOP SECRET", "NATO TOP SECRET"),
    ),
)

REFERENCE_LABELS: list[str] = [rule.label for rule in LEVEL_TABLE]
TO_FIELDS: tuple[str, ...] = tuple(rule.to_field for rule in LEVEL_TABLE)
FROM_FIELDS: tuple[str, ...] = tuple(rule.from_field for rule in LEVEL_TABLE)


def _normalize(text: str) -> str:
    return text.strip().upper()


def to_reference(schema: Any, source_text: str) -> ReferenceLevel:
    """
    Translate a nation's classification word into the reference level.

    Comparison is case-insensitive and ignores surrounding whitespace on the
    input. The schema's five ``to_nato_*`` values are checked in table order
    and the first match wins.

    Args:
        schema: Any object exposing ``nation_code`` and the ``to_nato_*`` fields.
        source_text: Classification in the source nation's vocabulary.

    Raises:
        UnknownClassification: No ``to_nato_*`` value matches; the error
            lists the schema's five values.
    """
    wanted = _normalize(source_text)
    for rule in LEVEL_TABLE:
        if wanted == getattr(schema, rule.to_field).upper():
            return rule.level

    raise UnknownClassification(
        nation_code=schema.nation_code,
        input_text=source_text,
        valid_options=[getattr(schema, field) for field in TO_FIELDS],
    )


def from_reference(schema: Any, reference_text: str) -> str:
    """
    Render a reference level in the schema nation's own words.

    Accepts the canonical label ("NATO SECRET") or the bare word ("SECRET").

    Raises:
        UnknownReferenceLevel: Input is neither a label nor a synonym.
    """
    wanted = _normalize(reference_text)
    for rule in LEVEL_TABLE:
        if rule.accepts(wanted):
            return getattr(schema, rule.from_field)

    raise UnknownReferenceLevel(input_text=reference_text, valid_options=REFERENCE_LABELS)

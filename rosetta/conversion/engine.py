"""
Conversion Engine — source classification → reference level → targets.

The engine is pure computation over schemas it fetches for itself: no
shared mutable state, no writes, no logging. It can be called from any
number of threads.

Two-step translation (hub and spoke):

1. Source nation word → reference level, via the source schema's ``to_nato_*``
2. Reference level → each target nation's word, via its ``from_nato_*``

Only the latest schema of a nation is ever used. An expired latest schema
fails the conversion; there is no fallback to an older version.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from rosetta.errors import AtLeastOneTargetRequired, SchemaExpired, SchemaNotFound
from rosetta.taxonomy.levels import ReferenceLevel
from rosetta.taxonomy.schema import ClassificationSchema, as_naive_utc, normalize_nation_code, utcnow


class SchemaSource(Protocol):
    """The two registry reads the engine depends on."""

    def latest(self, nation_code: str) -> ClassificationSchema | None: ...

    def latest_many(self, nation_codes: Iterable[str]) -> list[ClassificationSchema]: ...


@dataclass
class ConversionResult:
    """Outcome of a successful conversion."""

    reference_level: ReferenceLevel
    target_classifications: dict[str, str]
    schema_versions: dict[str, str] = field(default_factory=dict)
    expires_at: datetime | None = None

    @property
    def nato_equivalent(self) -> str:
        return self.reference_level.value


def require_valid(schema: ClassificationSchema | None, nation_code: str, now: datetime) -> ClassificationSchema:
    """
    Return ``schema`` if it exists and has not expired at ``now``.

    Raises:
        SchemaNotFound: ``schema`` is None.
        SchemaExpired: The schema's expiry is at or before ``now``.
    """
    if schema is None:
        raise SchemaNotFound(nation_code)
    if not schema.is_valid(now):
        raise SchemaExpired(nation_code, schema.expires_at)
    return schema


# ════════════════════════════════════════════════════════════════
# Target policies
# ════════════════════════════════════════════════════════════════


class TargetPolicy(ABC):
    """Decides how the per-target step handles missing or expired schemas."""

    @abstractmethod
    def translate(
        self,
        reference_level: ReferenceLevel,
        target_codes: list[str],
        schemas: dict[str, ClassificationSchema],
        now: datetime,
    ) -> tuple[dict[str, str], list[ClassificationSchema]]:
        """Return (code → translated text, schemas used)."""


class AllOrNothingPolicy(TargetPolicy):
    """
    Any single target failure aborts the whole conversion.

    Every target schema is validated before any translation happens, so a
    failure never leaves a partial mapping behind.
    """

    def translate(self, reference_level, target_codes, schemas, now):
        used = [require_valid(schemas.get(code), code, now) for code in target_codes]
        translated = {
            schema.nation_code: schema.from_reference(reference_level.value) for schema in used
        }
        return translated, used


# ════════════════════════════════════════════════════════════════
# Engine
# ════════════════════════════════════════════════════════════════


class ConversionEngine:
    """
    Translates classifications between national vocabularies.

    Usage:
        engine = ConversionEngine(registry)
        result = engine.convert("USA", "SECRET", ["GBR", "FRA"])
        result.nato_equivalent          # "NATO SECRET"
        result.target_classifications   # {"GBR": "SECRET", "FRA": "Secret Défense"}
    """

    def __init__(
        self,
        schemas: SchemaSource,
        policy: TargetPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.schemas = schemas
        self.policy = policy or AllOrNothingPolicy()
        self.clock = clock

    def convert(
        self,
        source_nation_code: str,
        source_classification: str,
        target_nation_codes: Iterable[str],
        now: datetime | None = None,
    ) -> ConversionResult:
        """
        Run the full two-step conversion.

        Args:
            source_nation_code: Nation whose vocabulary ``source_classification`` is in.
            source_classification: Classification text as written by the source.
            target_nation_codes: Nations to translate for, at least one.
            now: Instant for expiry checks; defaults to the engine clock.

        Raises:
            AtLeastOneTargetRequired: ``target_nation_codes`` is empty.
            SchemaNotFound: Source or a target nation has no schema.
            SchemaExpired: Source or a target nation's latest schema expired.
            UnknownClassification: Source text is not in the source schema.
        """
        targets = _unique_codes(target_nation_codes)
        if not targets:
            raise AtLeastOneTargetRequired()

        now = as_naive_utc(now) if now is not None else self.clock()
        source_code = normalize_nation_code(source_nation_code)

        source = require_valid(self.schemas.latest(source_code), source_code, now)
        reference_level = source.to_reference(source_classification)

        by_code = {schema.nation_code: schema for schema in self.schemas.latest_many(targets)}
        translated, used = self.policy.translate(reference_level, targets, by_code, now)

        return ConversionResult(
            reference_level=reference_level,
            target_classifications=translated,
            schema_versions={s.nation_code: s.version for s in [source, *used]},
            expires_at=_earliest_expiry([source, *used]),
        )


def _unique_codes(codes: Iterable[str]) -> list[str]:
    unique: list[str] = []
    for code in codes:
        code = normalize_nation_code(code)
        if code and code not in unique:
            unique.append(code)
    return unique


def _earliest_expiry(schemas: list[ClassificationSchema]) -> datetime | None:
    expiries = [s.expires_at for s in schemas if s.expires_at is not None]
    return min(expiries) if expiries else None

"""
Schema Registry — versioned, expiring national classification schemas.

The registry enforces the versioning discipline for classification mappings,
which are legally significant:

1. Versioned      — (nation code, version) is unique
2. Append-Only    — mapping fields of a stored version are never rewritten;
                    ``revise`` publishes a new version instead
3. Expiring       — a version may carry ``expires_at``; consumers must reject
                    an expired latest version rather than fall back

"Latest" for a nation is the version with the greatest ``created_at``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from rosetta.errors import SchemaNotFound, SchemaVersionExists
from rosetta.store.database import Database
from rosetta.store.models import ClassificationSchemaDB
from rosetta.taxonomy.levels import FROM_FIELDS, TO_FIELDS
from rosetta.taxonomy.schema import (
    ClassificationSchema,
    SchemaDefinition,
    as_naive_utc,
    normalize_nation_code,
    utcnow,
)

logger = logging.getLogger(__name__)

REVISABLE_FIELDS = frozenset(TO_FIELDS + FROM_FIELDS + ("caveats", "expires_at", "authority_id"))


def is_valid(schema: ClassificationSchema, now: datetime) -> bool:
    """True if ``expires_at`` is null or strictly greater than ``now``."""
    return schema.is_valid(now)


class SchemaRegistry:
    """
    Stores and retrieves per-nation classification schemas.

    Usage:
        registry = SchemaRegistry(db)
        registry.publish(SchemaDefinition(nation_code="USA", version="v1.0", ...))
        schema = registry.latest("USA")
    """

    def __init__(self, db: Database, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.clock = clock

    # ── Reads ──────────────────────────────────────────────────

    def latest(self, nation_code: str) -> ClassificationSchema | None:
        """Return the most recently created schema for a nation, expired or not."""
        with self.db.SessionLocal() as session:
            row = session.execute(
                select(ClassificationSchemaDB)
                .where(ClassificationSchemaDB.nation_code == normalize_nation_code(nation_code))
                .order_by(ClassificationSchemaDB.created_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            return ClassificationSchema.model_validate(row) if row else None

    def latest_many(self, nation_codes: Iterable[str]) -> list[ClassificationSchema]:
        """
        Batch form of ``latest``.

        Codes with no schema are absent from the result; callers detect them
        by looking up each code they asked for.
        """
        codes = {normalize_nation_code(code) for code in nation_codes}
        if not codes:
            return []

        with self.db.SessionLocal() as session:
            rows = session.execute(
                select(ClassificationSchemaDB)
                .where(ClassificationSchemaDB.nation_code.in_(codes))
                .order_by(
                    ClassificationSchemaDB.nation_code,
                    ClassificationSchemaDB.created_at.desc(),
                )
            ).scalars().all()

        latest: dict[str, ClassificationSchema] = {}
        for row in rows:
            if row.nation_code not in latest:
                latest[row.nation_code] = ClassificationSchema.model_validate(row)
        return list(latest.values())

    def by_nation_and_version(self, nation_code: str, version: str) -> ClassificationSchema | None:
        with self.db.SessionLocal() as session:
            row = self._get_row(session, normalize_nation_code(nation_code), version)
            return ClassificationSchema.model_validate(row) if row else None

    def get(self, schema_id) -> ClassificationSchema | None:
        with self.db.SessionLocal() as session:
            row = session.get(ClassificationSchemaDB, schema_id)
            return ClassificationSchema.model_validate(row) if row else None

    def versions(self, nation_code: str) -> list[ClassificationSchema]:
        """Full version history for a nation, newest first."""
        with self.db.SessionLocal() as session:
            rows = session.execute(
                select(ClassificationSchemaDB)
                .where(ClassificationSchemaDB.nation_code == normalize_nation_code(nation_code))
                .order_by(ClassificationSchemaDB.created_at.desc())
            ).scalars().all()
            return [ClassificationSchema.model_validate(row) for row in rows]

    def list_latest(self) -> list[ClassificationSchema]:
        """The latest version of every nation that has a schema, by nation code."""
        with self.db.SessionLocal() as session:
            codes = session.execute(
                select(ClassificationSchemaDB.nation_code).distinct()
            ).scalars().all()
        return sorted(self.latest_many(codes), key=lambda s: s.nation_code)

    def is_valid(self, schema: ClassificationSchema, now: datetime | None = None) -> bool:
        return is_valid(schema, now or self.clock())

    # ── Writes ─────────────────────────────────────────────────

    def publish(self, definition: SchemaDefinition) -> ClassificationSchema:
        """
        Insert a new schema version.

        Raises:
            SchemaVersionExists: The nation already has this version label.
        """
        now = self.clock()
        row = ClassificationSchemaDB(
            **definition.model_dump(),
            created_at=now,
            updated_at=now,
        )
        if row.expires_at is not None:
            row.expires_at = as_naive_utc(row.expires_at)

        with self.db.SessionLocal() as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise SchemaVersionExists(definition.nation_code, definition.version) from exc

            logger.info(
                "Classification schema published: nation=%s version=%s expires_at=%s",
                row.nation_code, row.version, row.expires_at,
            )
            return ClassificationSchema.model_validate(row)

    def revise(
        self,
        nation_code: str,
        base_version: str,
        new_version: str,
        creator_id,
        **changes: Any,
    ) -> ClassificationSchema:
        """
        Publish a new version derived from an existing one.

        This is the only way to change a nation's mappings. The base version
        is left exactly as it was. The base's expiry is not carried over, so
        revising a retired version renews it unless ``expires_at`` is given.

        Args:
            nation_code: Nation whose schema is revised.
            base_version: Version to copy.
            new_version: Label of the new version.
            creator_id: User publishing the revision.
            **changes: Mapping fields, ``caveats``, ``expires_at`` or
                ``authority_id`` to override.

        Raises:
            SchemaNotFound: The base version does not exist.
            SchemaVersionExists: ``new_version`` is already taken.
            ValueError: ``changes`` names a field that cannot be revised.
        """
        unknown = set(changes) - REVISABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be revised: {', '.join(sorted(unknown))}")

        base = self.by_nation_and_version(nation_code, base_version)
        if base is None:
            raise SchemaNotFound(normalize_nation_code(nation_code))

        fields = base.model_dump(
            include=set(SchemaDefinition.model_fields) - {"version", "creator_id", "expires_at"},
        )
        fields.update(changes)
        revised = self.publish(
            SchemaDefinition(**fields, version=new_version, creator_id=creator_id)
        )
        logger.info(
            "Classification schema revised: nation=%s %s -> %s",
            revised.nation_code, base_version, new_version,
        )
        return revised

    def retire(
        self,
        nation_code: str,
        version: str,
        at: datetime | None = None,
    ) -> ClassificationSchema:
        """
        Set a version's expiry (default: now). Mapping fields are untouched.

        Raises:
            SchemaNotFound: No such version.
        """
        code = normalize_nation_code(nation_code)
        with self.db.SessionLocal() as session:
            row = self._get_row(session, code, version)
            if row is None:
                raise SchemaNotFound(code)

            now = self.clock()
            row.expires_at = as_naive_utc(at) if at is not None else now
            row.updated_at = now
            session.commit()

            logger.info(
                "Classification schema retired: nation=%s version=%s expires_at=%s",
                code, version, row.expires_at,
            )
            return ClassificationSchema.model_validate(row)

    # ── Internal ────────────────────────────────────────────────

    @staticmethod
    def _get_row(session, nation_code: str, version: str) -> ClassificationSchemaDB | None:
        return session.execute(
            select(ClassificationSchemaDB)
            .where(ClassificationSchemaDB.nation_code == nation_code)
            .where(ClassificationSchemaDB.version == version)
        ).scalar_one_or_none()

"""
Organization Directory — nations and their accrediting authorities.

The directory supplies the parties a conversion request refers to. It is
read-only from the engine's perspective; the lifecycle consults it to make
sure a requesting authority exists and is still accredited.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from rosetta.errors import AuthorityExpired, AuthorityNotFound, NationExists, NationNotFound
from rosetta.store.database import Database
from rosetta.store.models import AuthorityDB, NationDB
from rosetta.taxonomy.schema import Authority, Nation, as_naive_utc, normalize_nation_code, utcnow

logger = logging.getLogger(__name__)


class OrganizationDirectory:
    """Lookup and registration of nations and authorities."""

    def __init__(self, db: Database, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.clock = clock

    # ── Nations ────────────────────────────────────────────────

    def create_nation(self, nation_code: str, nation_name: str, creator_id: UUID) -> Nation:
        code = normalize_nation_code(nation_code)
        if len(code) != 3:
            raise ValueError(f"Nation code must be 3 letters, got '{nation_code}'")

        now = self.clock()
        row = NationDB(
            nation_code=code,
            nation_name=nation_name,
            creator_id=creator_id,
            created_at=now,
            updated_at=now,
        )
        with self.db.SessionLocal() as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise NationExists(code) from exc
            logger.info("Nation registered: %s (%s)", code, nation_name)
            return Nation.model_validate(row)

    def get_nation(self, nation_id: UUID) -> Nation | None:
        with self.db.SessionLocal() as session:
            row = session.get(NationDB, nation_id)
            return Nation.model_validate(row) if row else None

    def get_nation_by_code(self, nation_code: str) -> Nation | None:
        with self.db.SessionLocal() as session:
            row = self._nation_row(session, normalize_nation_code(nation_code))
            return Nation.model_validate(row) if row else None

    def list_nations(self) -> list[Nation]:
        with self.db.SessionLocal() as session:
            rows = session.execute(select(NationDB).order_by(NationDB.nation_code)).scalars().all()
            return [Nation.model_validate(row) for row in rows]

    def rename_nation(self, nation_code: str, nation_name: str) -> Nation:
        """Change a nation's display name. The code itself never changes."""
        code = normalize_nation_code(nation_code)
        with self.db.SessionLocal() as session:
            row = self._nation_row(session, code)
            if row is None:
                raise NationNotFound(code)
            row.nation_name = nation_name
            row.updated_at = self.clock()
            session.commit()
            return Nation.model_validate(row)

    # ── Authorities ────────────────────────────────────────────

    def create_authority(
        self,
        nation_code: str,
        name: str,
        email: str,
        phone: str,
        creator_id: UUID,
        expires_at: datetime | None = None,
    ) -> Authority:
        code = normalize_nation_code(nation_code)
        now = self.clock()
        with self.db.SessionLocal() as session:
            nation = self._nation_row(session, code)
            if nation is None:
                raise NationNotFound(code)

            row = AuthorityDB(
                nation_id=nation.id,
                name=name,
                email=email,
                phone=phone,
                creator_id=creator_id,
                created_at=now,
                updated_at=now,
                expires_at=as_naive_utc(expires_at) if expires_at else None,
            )
            session.add(row)
            session.commit()
            logger.info("Authority registered: %s for %s", name, code)
            return Authority.model_validate(row)

    def get_authority(self, authority_id: UUID) -> Authority | None:
        with self.db.SessionLocal() as session:
            row = session.get(AuthorityDB, authority_id)
            return Authority.model_validate(row) if row else None

    def authorities_for_nation(self, nation_code: str) -> list[Authority]:
        code = normalize_nation_code(nation_code)
        with self.db.SessionLocal() as session:
            nation = self._nation_row(session, code)
            if nation is None:
                raise NationNotFound(code)
            rows = session.execute(
                select(AuthorityDB)
                .where(AuthorityDB.nation_id == nation.id)
                .order_by(AuthorityDB.name)
            ).scalars().all()
            return [Authority.model_validate(row) for row in rows]

    def is_active(self, authority: Authority, now: datetime | None = None) -> bool:
        return authority.is_active(now or self.clock())

    def require_active_authority(self, authority_id: UUID) -> Authority:
        """
        Return the authority if it may act in a request right now.

        Raises:
            AuthorityNotFound: Unknown authority.
            AuthorityExpired: Accreditation lapsed.
        """
        authority = self.get_authority(authority_id)
        if authority is None:
            raise AuthorityNotFound(authority_id)
        if not self.is_active(authority):
            raise AuthorityExpired(authority_id, authority.expires_at)
        return authority

    # ── Internal ────────────────────────────────────────────────

    @staticmethod
    def _nation_row(session, nation_code: str) -> NationDB | None:
        return session.execute(
            select(NationDB).where(NationDB.nation_code == nation_code)
        ).scalar_one_or_none()

"""
Conversion Records — persistence for subject artifacts, requests and responses.

Sensitive text (document title and description, metadata authorization
reference) is encrypted on write and decrypted on read with the injected
``FieldCipher``; callers only ever see plaintext models.

Read-path queries (by creator, authority, nation, pending, completed, ...)
are conveniences for operators and transports; the conversion algorithm
itself only needs ``get_request`` and ``record_response``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from uuid import UUID

from sqlalchemy import String, select
from sqlalchemy.exc import IntegrityError

from rosetta.errors import RequestAlreadyCompleted, RequestNotFound
from rosetta.store.crypto import FieldCipher
from rosetta.store.database import Database
from rosetta.store.models import (
    ConversionRequestDB,
    ConversionResponseDB,
    DataObjectDB,
    MetadataDB,
)
from rosetta.taxonomy.schema import (
    ConversionRequest,
    ConversionResponse,
    DataObject,
    DataObjectInput,
    Metadata,
    MetadataInput,
    normalize_nation_code,
    utcnow,
)

logger = logging.getLogger(__name__)


class ConversionRecords:
    """Store for documents, metadata, conversion requests and responses."""

    def __init__(
        self,
        db: Database,
        cipher: FieldCipher,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.cipher = cipher
        self.clock = clock

    # ── Subject artifacts ──────────────────────────────────────

    def create_data_object(self, data: DataObjectInput, creator_id: UUID) -> DataObject:
        now = self.clock()
        row = DataObjectDB(
            creator_id=creator_id,
            title=self.cipher.encrypt(data.title),
            description=self.cipher.encrypt(data.description),
            created_at=now,
            updated_at=now,
        )
        with self.db.SessionLocal() as session:
            session.add(row)
            session.commit()
            return self._data_object(row)

    def get_data_object(self, data_object_id: UUID) -> DataObject | None:
        with self.db.SessionLocal() as session:
            row = session.get(DataObjectDB, data_object_id)
            return self._data_object(row) if row else None

    def create_metadata(self, data: MetadataInput, data_object_id: UUID) -> Metadata:
        now = self.clock()
        fields = data.model_dump()
        fields["authorization_reference"] = self.cipher.encrypt_optional(
            fields["authorization_reference"]
        )
        row = MetadataDB(**fields, data_object_id=data_object_id, created_at=now, updated_at=now)
        with self.db.SessionLocal() as session:
            session.add(row)
            session.commit()
            return self._metadata(row)

    def get_metadata_for_data_object(self, data_object_id: UUID) -> Metadata | None:
        with self.db.SessionLocal() as session:
            row = session.execute(
                select(MetadataDB).where(MetadataDB.data_object_id == data_object_id).limit(1)
            ).scalar_one_or_none()
            return self._metadata(row) if row else None

    # ── Requests ───────────────────────────────────────────────

    def create_request(
        self,
        creator_id: UUID,
        authority_id: UUID,
        data_object_id: UUID,
        source_nation_code: str,
        source_nation_classification: str,
        target_nation_codes: list[str],
    ) -> ConversionRequest:
        now = self.clock()
        row = ConversionRequestDB(
            creator_id=creator_id,
            authority_id=authority_id,
            data_object_id=data_object_id,
            source_nation_code=source_nation_code,
            source_nation_classification=source_nation_classification,
            target_nation_codes=list(target_nation_codes),
            created_at=now,
            updated_at=now,
        )
        with self.db.SessionLocal() as session:
            session.add(row)
            session.commit()
            return ConversionRequest.model_validate(row)

    def get_request(self, request_id: UUID) -> ConversionRequest | None:
        with self.db.SessionLocal() as session:
            row = session.get(ConversionRequestDB, request_id)
            return ConversionRequest.model_validate(row) if row else None

    def get_request_by_data_object(self, data_object_id: UUID) -> ConversionRequest | None:
        return self._first_request(ConversionRequestDB.data_object_id == data_object_id)

    def requests_by_creator(self, creator_id: UUID) -> list[ConversionRequest]:
        return self._requests(ConversionRequestDB.creator_id == creator_id)

    def requests_by_authority(self, authority_id: UUID) -> list[ConversionRequest]:
        return self._requests(ConversionRequestDB.authority_id == authority_id)

    def requests_by_source_nation(self, nation_code: str) -> list[ConversionRequest]:
        return self._requests(
            ConversionRequestDB.source_nation_code == normalize_nation_code(nation_code)
        )

    def requests_by_target_nation(self, nation_code: str) -> list[ConversionRequest]:
        """Requests whose target list contains ``nation_code``."""
        code = normalize_nation_code(nation_code)
        # JSON text prefilter works on both SQLite and PostgreSQL; exact check below
        candidates = self._requests(
            ConversionRequestDB.target_nation_codes.cast(String).like(f'%"{code}"%')
        )
        return [r for r in candidates if code in r.target_nation_codes]

    def pending_requests(self) -> list[ConversionRequest]:
        return self._requests(ConversionRequestDB.completed_at.is_(None))

    def completed_requests(self) -> list[ConversionRequest]:
        return self._requests(ConversionRequestDB.completed_at.is_not(None))

    # ── Responses ──────────────────────────────────────────────

    def record_response(
        self,
        request_id: UUID,
        nato_equivalent: str,
        target_nation_classifications: dict[str, str],
        schema_versions: dict[str, str],
        expires_at: datetime | None = None,
    ) -> ConversionResponse:
        """
        Persist the response and complete the request in one transaction.

        Raises:
            RequestNotFound: No such request.
            RequestAlreadyCompleted: The request is already completed or a
                concurrent writer inserted its response first.
        """
        now = self.clock()
        with self.db.SessionLocal() as session:
            request = session.get(ConversionRequestDB, request_id)
            if request is None:
                raise RequestNotFound(request_id)
            if request.completed_at is not None:
                raise RequestAlreadyCompleted(request_id)

            response = ConversionResponseDB(
                conversion_request_id=request.id,
                subject_data_id=request.data_object_id,
                nato_equivalent=nato_equivalent,
                target_nation_classifications=dict(target_nation_classifications),
                schema_versions=dict(schema_versions),
                created_at=now,
                updated_at=now,
                expires_at=expires_at,
            )
            request.completed_at = now
            request.updated_at = now
            session.add(response)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise RequestAlreadyCompleted(request_id) from exc

            logger.info(
                "Conversion response recorded: request=%s reference=%s targets=%s",
                request_id, nato_equivalent, ",".join(target_nation_classifications),
            )
            return ConversionResponse.model_validate(response)

    def get_response(self, response_id: UUID) -> ConversionResponse | None:
        with self.db.SessionLocal() as session:
            row = session.get(ConversionResponseDB, response_id)
            return ConversionResponse.model_validate(row) if row else None

    def get_response_for_request(self, request_id: UUID) -> ConversionResponse | None:
        return self._first_response(ConversionResponseDB.conversion_request_id == request_id)

    def get_response_for_data_object(self, data_object_id: UUID) -> ConversionResponse | None:
        return self._first_response(ConversionResponseDB.subject_data_id == data_object_id)

    def responses_by_reference_level(self, nato_equivalent: str) -> list[ConversionResponse]:
        return self._responses(ConversionResponseDB.nato_equivalent == nato_equivalent)

    def active_responses(self, now: datetime | None = None) -> list[ConversionResponse]:
        now = now or self.clock()
        return self._responses(
            ConversionResponseDB.expires_at.is_(None) | (ConversionResponseDB.expires_at > now)
        )

    def expired_responses(self, now: datetime | None = None) -> list[ConversionResponse]:
        now = now or self.clock()
        return self._responses(
            ConversionResponseDB.expires_at.is_not(None),
            ConversionResponseDB.expires_at <= now,
        )

    def count_responses_for_request(self, request_id: UUID) -> int:
        return len(self._responses(ConversionResponseDB.conversion_request_id == request_id))

    # ── Internal ────────────────────────────────────────────────

    def _requests(self, *criteria) -> list[ConversionRequest]:
        with self.db.SessionLocal() as session:
            rows = session.execute(
                select(ConversionRequestDB)
                .where(*criteria)
                .order_by(ConversionRequestDB.created_at.asc())
            ).scalars().all()
            return [ConversionRequest.model_validate(row) for row in rows]

    def _first_request(self, *criteria) -> ConversionRequest | None:
        found = self._requests(*criteria)
        return found[0] if found else None

    def _responses(self, *criteria) -> list[ConversionResponse]:
        with self.db.SessionLocal() as session:
            rows = session.execute(
                select(ConversionResponseDB)
                .where(*criteria)
                .order_by(ConversionResponseDB.created_at.asc())
            ).scalars().all()
            return [ConversionResponse.model_validate(row) for row in rows]

    def _first_response(self, *criteria) -> ConversionResponse | None:
        found = self._responses(*criteria)
        return found[0] if found else None

    def _data_object(self, row: DataObjectDB) -> DataObject:
        return DataObject(
            id=row.id,
            creator_id=row.creator_id,
            title=self.cipher.decrypt(row.title),
            description=self.cipher.decrypt(row.description),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _metadata(self, row: MetadataDB) -> Metadata:
        fields = {name: getattr(row, name) for name in Metadata.model_fields}
        fields["authorization_reference"] = self.cipher.decrypt_optional(
            row.authorization_reference
        )
        return Metadata(**fields)

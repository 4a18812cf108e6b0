"""
Conversion Store — SQLAlchemy models for directory, schemas, and conversions.

Column types are portable: ``Uuid`` and ``JSON`` map to native UUID and JSONB
on PostgreSQL and to text on SQLite. Timestamps are naive UTC.

Integrity rules enforced by the database itself:

1. A nation code appears once (``nations.nation_code`` unique).
2. A (nation code, version) pair appears once in ``classification_schemas``.
3. A conversion request has at most one response
   (``conversion_responses.conversion_request_id`` unique).

Columns marked "ciphertext" hold base64 AES-GCM output written by
``rosetta.store.crypto.FieldCipher``; they are never queried by value.
"""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

from rosetta.taxonomy.schema import utcnow

JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all Rosetta models."""
    pass


class NationDB(Base):
    __tablename__ = "nations"

    id = Column(Uuid, primary_key=True, default=uuid4)
    creator_id = Column(Uuid, nullable=False)
    nation_code = Column(
        String(3), nullable=False, unique=True, index=True,
        comment="3-letter nation code; immutable once referenced",
    )
    nation_name = Column(String(128), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Nation {self.nation_code}>"


class AuthorityDB(Base):
    __tablename__ = "authorities"

    id = Column(Uuid, primary_key=True, default=uuid4)
    creator_id = Column(Uuid, nullable=False)
    nation_id = Column(Uuid, ForeignKey("nations.id", ondelete="RESTRICT"), nullable=False)
    name = Column(String(256), nullable=False)
    email = Column(String(128), nullable=False)
    phone = Column(String(32), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=True, comment="End of accreditation")

    __table_args__ = (
        Index("authorities__creator_id_idx", "creator_id"),
        Index("authorities__nation_id_idx", "nation_id"),
    )


class ClassificationSchemaDB(Base):
    """
    One version of a nation's classification mapping.

    Rows are append-only with respect to their mapping fields: a revision is
    a new row with a new version label. Only ``expires_at`` may change on an
    existing row (retirement).
    """

    __tablename__ = "classification_schemas"

    id = Column(Uuid, primary_key=True, default=uuid4)
    creator_id = Column(Uuid, nullable=False)
    nation_code = Column(String(3), nullable=False)
    # Conversions to NATO
    to_nato_unclassified = Column(String(128), nullable=False)
    to_nato_restricted = Column(String(128), nullable=False)
    to_nato_confidential = Column(String(128), nullable=False)
    to_nato_secret = Column(String(128), nullable=False)
    to_nato_top_secret = Column(String(128), nullable=False)
    # Conversions from NATO
    from_nato_unclassified = Column(String(128), nullable=False)
    from_nato_restricted = Column(String(128), nullable=False)
    from_nato_confidential = Column(String(128), nullable=False)
    from_nato_secret = Column(String(128), nullable=False)
    from_nato_top_secret = Column(String(128), nullable=False)
    # Other details
    caveats = Column(Text, nullable=False, default="")
    version = Column(String(32), nullable=False)
    authority_id = Column(
        Uuid, ForeignKey("authorities.id", ondelete="RESTRICT"), nullable=False,
    )
    created_at = Column(
        DateTime, nullable=False, default=utcnow,
        comment="Defines 'latest' for the nation",
    )
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "nation_code", "version", name="classification_schemas__nation_version_idx",
        ),
        Index("classification_schemas__nation_code_idx", "nation_code", "created_at"),
        Index("classification_schemas__authority_id_idx", "authority_id"),
    )

    def __repr__(self) -> str:
        return f"<ClassificationSchema {self.nation_code} {self.version}>"


class DataObjectDB(Base):
    __tablename__ = "data_objects"

    id = Column(Uuid, primary_key=True, default=uuid4)
    creator_id = Column(Uuid, nullable=False, index=True)
    title = Column(Text, nullable=False, comment="ciphertext")
    description = Column(Text, nullable=False, comment="ciphertext")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)


class MetadataDB(Base):
    __tablename__ = "metadata"

    id = Column(Uuid, primary_key=True, default=uuid4)
    data_object_id = Column(
        Uuid, ForeignKey("data_objects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    identifier = Column(String(256), nullable=False)
    authorization_reference = Column(Text, nullable=True, comment="ciphertext")
    authorization_reference_date = Column(DateTime, nullable=True)
    originator_organization_id = Column(Uuid, nullable=False)
    custodian_organization_id = Column(Uuid, nullable=False)
    format = Column(String(128), nullable=False)
    format_size = Column(BigInteger, nullable=True)
    security_classification = Column(String(128), nullable=False)
    releasable_to_countries = Column(JSONType, nullable=True)
    releasable_to_organizations = Column(JSONType, nullable=True)
    releasable_to_categories = Column(JSONType, nullable=True)
    disclosure_category = Column(String(128), nullable=True)
    handling_restrictions = Column(JSONType, nullable=True)
    handling_authority = Column(String(256), nullable=True)
    no_handling_restrictions = Column(Boolean, nullable=True)
    domain = Column(String(256), nullable=False, index=True)
    tags = Column(JSONType, nullable=False, default=lambda: ["joint_forces"])
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)


class ConversionRequestDB(Base):
    """A conversion request. Pending while ``completed_at`` is null."""

    __tablename__ = "conversion_requests"

    id = Column(Uuid, primary_key=True, default=uuid4)
    creator_id = Column(Uuid, nullable=False)
    authority_id = Column(
        Uuid, ForeignKey("authorities.id", ondelete="RESTRICT"), nullable=False,
    )
    data_object_id = Column(
        Uuid, ForeignKey("data_objects.id", ondelete="CASCADE"), nullable=False,
    )
    source_nation_classification = Column(String(128), nullable=False)
    source_nation_code = Column(String(3), nullable=False)
    target_nation_codes = Column(
        JSONType, nullable=False,
        comment="Ordered list of target nation codes, at least one",
    )
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("conversion_requests__creator_id_idx", "creator_id"),
        Index("conversion_requests__authority_id_idx", "authority_id"),
        Index("conversion_requests__data_object_id_idx", "data_object_id"),
        Index("conversion_requests__source_nation_code_idx", "source_nation_code"),
        Index("conversion_requests__completed_at_idx", "completed_at"),
    )


class ConversionResponseDB(Base):
    """The single, immutable result of a completed conversion request."""

    __tablename__ = "conversion_responses"

    id = Column(Uuid, primary_key=True, default=uuid4)
    conversion_request_id = Column(
        Uuid, ForeignKey("conversion_requests.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    subject_data_id = Column(
        Uuid, ForeignKey("data_objects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    nato_equivalent = Column(String(128), nullable=False)
    target_nation_classifications = Column(
        JSONType, nullable=False, comment="nation code -> translated classification",
    )
    schema_versions = Column(
        JSONType, nullable=False, default=dict,
        comment="nation code -> schema version used",
    )
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    expires_at = Column(DateTime, nullable=True)

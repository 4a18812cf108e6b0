"""
Domain Schema — Pydantic models for every entity the conversion core handles.

These models are the canonical in-memory shapes. The SQLAlchemy rows in
``rosetta.store.models`` are converted into them at the service boundary, so
the engine and lifecycle never touch ORM objects or ciphertext.

Timestamps are naive UTC throughout, matching the ``TIMESTAMP`` columns of
the store.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, computed_field, field_validator

from rosetta.taxonomy.levels import ReferenceLevel, from_reference, to_reference


def utcnow() -> datetime:
    """Current wall-clock time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def normalize_nation_code(code: str) -> str:
    return code.strip().upper()


# ════════════════════════════════════════════════════════════════
# Enumerations
# ════════════════════════════════════════════════════════════════


class RequestStatus(str, enum.Enum):
    """Conversion request lifecycle. There is no persisted failed state."""

    PENDING = "pending"
    COMPLETED = "completed"


# ════════════════════════════════════════════════════════════════
# Organization Directory
# ════════════════════════════════════════════════════════════════


class Nation(BaseModel):
    """A participating nation, keyed by its immutable 3-letter code."""

    model_config = {"from_attributes": True}

    id: UUID = Field(default_factory=uuid4)
    creator_id: UUID
    nation_code: str = Field(min_length=3, max_length=3)
    nation_name: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Authority(BaseModel):
    """
    An accrediting body empowered to issue or receive classified material.

    An authority whose accreditation has expired is not a valid actor.
    """

    model_config = {"from_attributes": True}

    id: UUID = Field(default_factory=uuid4)
    creator_id: UUID
    nation_id: UUID
    name: str
    email: str
    phone: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime | None = None

    def is_active(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return True
        return self.expires_at > as_naive_utc(now or utcnow())


# ════════════════════════════════════════════════════════════════
# Schema Registry
# ════════════════════════════════════════════════════════════════


class ClassificationSchema(BaseModel):
    """
    A nation's bidirectional mapping to and from the reference vocabulary.

    ``to_nato_*`` fields hold the words the nation uses for each level when
    sending; ``from_nato_*`` fields hold the words it expects when receiving.
    The two sets usually coincide but need not.
    """

    model_config = {"from_attributes": True}

    id: UUID = Field(default_factory=uuid4)
    creator_id: UUID
    nation_code: str
    # Conversions to NATO
    to_nato_unclassified: str
    to_nato_restricted: str
    to_nato_confidential: str
    to_nato_secret: str
    to_nato_top_secret: str
    # Conversions from NATO
    from_nato_unclassified: str
    from_nato_restricted: str
    from_nato_confidential: str
    from_nato_secret: str
    from_nato_top_secret: str
    # Other details
    caveats: str = ""
    version: str
    authority_id: UUID
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime | None = None

    def is_valid(self, now: datetime | None = None) -> bool:
        """True when the schema has no expiry or expires strictly after ``now``."""
        if self.expires_at is None:
            return True
        return self.expires_at > as_naive_utc(now or utcnow())

    def to_reference(self, source_text: str) -> ReferenceLevel:
        return to_reference(self, source_text)

    def from_reference(self, reference_text: str) -> str:
        return from_reference(self, reference_text)


class SchemaDefinition(BaseModel):
    """Input for publishing a new schema version."""

    creator_id: UUID
    nation_code: str
    to_nato_unclassified: str
    to_nato_restricted: str
    to_nato_confidential: str
    to_nato_secret: str
    to_nato_top_secret: str
    from_nato_unclassified: str
    from_nato_restricted: str
    from_nato_confidential: str
    from_nato_secret: str
    from_nato_top_secret: str
    caveats: str = ""
    version: str
    authority_id: UUID
    expires_at: datetime | None = None

    @field_validator("nation_code")
    @classmethod
    def _upper_code(cls, value: str) -> str:
        return normalize_nation_code(value)


# ════════════════════════════════════════════════════════════════
# Subject Artifacts
# ════════════════════════════════════════════════════════════════


class DataObject(BaseModel):
    """The document being classified. Title and description are stored encrypted."""

    id: UUID = Field(default_factory=uuid4)
    creator_id: UUID
    title: str
    description: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Metadata(BaseModel):
    """Provenance and releasability metadata for a data object."""

    id: UUID = Field(default_factory=uuid4)
    data_object_id: UUID

    # Global identifier
    identifier: str

    # Legal basis for the activity (OPORD, MOU, ...), stored encrypted
    authorization_reference: str | None = None
    authorization_reference_date: datetime | None = None

    # Originator and custodian (authority ids)
    originator_organization_id: UUID
    custodian_organization_id: UUID

    format: str
    format_size: int | None = None

    security_classification: str

    # Disclosure & releasability
    releasable_to_countries: list[str] | None = None
    releasable_to_organizations: list[str] | None = None
    releasable_to_categories: list[str] | None = None
    disclosure_category: str | None = None

    # Handling restrictions beyond the classification level
    handling_restrictions: list[str] | None = None
    handling_authority: str | None = None
    no_handling_restrictions: bool | None = None

    domain: str
    tags: list[str] = Field(default_factory=lambda: ["joint_forces"])
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class DataObjectInput(BaseModel):
    title: str
    description: str


class MetadataInput(BaseModel):
    identifier: str
    authorization_reference: str | None = None
    authorization_reference_date: datetime | None = None
    originator_organization_id: UUID
    custodian_organization_id: UUID
    format: str
    format_size: int | None = None
    security_classification: str
    releasable_to_countries: list[str] | None = None
    releasable_to_organizations: list[str] | None = None
    releasable_to_categories: list[str] | None = None
    disclosure_category: str | None = None
    handling_restrictions: list[str] | None = None
    handling_authority: str | None = None
    no_handling_restrictions: bool | None = None
    domain: str
    tags: list[str] = Field(default_factory=lambda: ["joint_forces"])


# ════════════════════════════════════════════════════════════════
# Request / Response
# ════════════════════════════════════════════════════════════════


class ConversionRequestInput(BaseModel):
    """
    The payload submitted by an accredited authority to start a conversion.

    Nation codes are upper-cased; duplicate targets are dropped keeping the
    first occurrence. An empty target list is rejected at submission with
    ``AtLeastOneTargetRequired`` rather than here.
    """

    user_id: UUID
    authority_id: UUID
    data_object: DataObjectInput
    metadata: MetadataInput
    source_nation_classification: str
    source_nation_code: str
    target_nation_codes: list[str]

    @field_validator("source_nation_code")
    @classmethod
    def _upper_source(cls, value: str) -> str:
        return normalize_nation_code(value)

    @field_validator("target_nation_codes")
    @classmethod
    def _upper_targets(cls, value: list[str]) -> list[str]:
        seen: list[str] = []
        for code in value:
            code = normalize_nation_code(code)
            if code and code not in seen:
                seen.append(code)
        return seen


class ConversionRequest(BaseModel):
    """A request to convert one document's classification for target nations."""

    model_config = {"from_attributes": True}

    id: UUID = Field(default_factory=uuid4)
    creator_id: UUID
    authority_id: UUID
    data_object_id: UUID
    source_nation_classification: str
    source_nation_code: str
    target_nation_codes: list[str]
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = None

    @computed_field
    @property
    def status(self) -> RequestStatus:
        if self.completed_at is None:
            return RequestStatus.PENDING
        return RequestStatus.COMPLETED

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


class ConversionResponse(BaseModel):
    """
    The immutable outcome of a processed request.

    ``schema_versions`` records which schema version of each nation produced
    the translation, so the record can be audited after later revisions.
    """

    model_config = {"from_attributes": True}

    id: UUID = Field(default_factory=uuid4)
    conversion_request_id: UUID
    subject_data_id: UUID
    nato_equivalent: str
    target_nation_classifications: dict[str, str]
    schema_versions: dict[str, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Expired once ``expires_at`` is at or before ``now``, as for schemas."""
        if self.expires_at is None:
            return False
        return self.expires_at <= as_naive_utc(now or utcnow())

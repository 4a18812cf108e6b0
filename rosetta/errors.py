"""
Error taxonomy for the classification conversion core.

Every failure a caller can act on is a subclass of ``RosettaError`` and
carries the offending values as attributes, so a transport layer can render
them without parsing messages. Conversion failures (``ConversionError``)
name the nation and the text that failed and enumerate valid alternatives,
which lets an operator correct the input and resubmit.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID


class RosettaError(Exception):
    """Base class for all errors raised by Rosetta."""
    pass


# ════════════════════════════════════════════════════════════════
# Conversion errors
# ════════════════════════════════════════════════════════════════


class ConversionError(RosettaError):
    """A conversion could not be completed; the request stays pending."""
    pass


class SchemaNotFound(ConversionError):
    """No classification schema exists for a referenced nation."""

    def __init__(self, nation_code: str) -> None:
        self.nation_code = nation_code
        super().__init__(f"No classification schema found for nation code {nation_code}")


class SchemaExpired(ConversionError):
    """The latest schema for a nation exists but is past its expiry."""

    def __init__(self, nation_code: str, expired_at: datetime | None) -> None:
        self.nation_code = nation_code
        self.expired_at = expired_at
        super().__init__(
            f"Classification schema for nation {nation_code} has expired"
            + (f" (expired at {expired_at.isoformat()})" if expired_at else "")
        )


class UnknownClassification(ConversionError):
    """Source text matched none of the schema's five to-reference values."""

    def __init__(self, nation_code: str, input_text: str, valid_options: list[str]) -> None:
        self.nation_code = nation_code
        self.input_text = input_text
        self.valid_options = list(valid_options)
        super().__init__(
            f"Unknown classification '{input_text}' for nation code {nation_code}. "
            f"Valid classifications: {', '.join(self.valid_options)}"
        )


class UnknownReferenceLevel(ConversionError):
    """Reference text matched no canonical label or bare-word synonym."""

    def __init__(self, input_text: str, valid_options: list[str]) -> None:
        self.input_text = input_text
        self.valid_options = list(valid_options)
        super().__init__(
            f"Unknown NATO classification '{input_text}'. "
            f"Valid NATO levels: {', '.join(self.valid_options)}"
        )


class AtLeastOneTargetRequired(ConversionError):
    """A conversion was requested with an empty target nation list."""

    def __init__(self) -> None:
        super().__init__("At least one target nation code is required")


# ════════════════════════════════════════════════════════════════
# Registry / directory errors
# ════════════════════════════════════════════════════════════════


class SchemaVersionExists(RosettaError):
    """A (nation code, version) pair is already registered."""

    def __init__(self, nation_code: str, version: str) -> None:
        self.nation_code = nation_code
        self.version = version
        super().__init__(
            f"Classification schema {version} already exists for nation {nation_code}"
        )


class NationNotFound(RosettaError):
    def __init__(self, nation_code: str) -> None:
        self.nation_code = nation_code
        super().__init__(f"Nation {nation_code} not found")


class NationExists(RosettaError):
    def __init__(self, nation_code: str) -> None:
        self.nation_code = nation_code
        super().__init__(f"Nation {nation_code} already exists")


class AuthorityNotFound(RosettaError):
    def __init__(self, authority_id: UUID) -> None:
        self.authority_id = authority_id
        super().__init__(f"Authority {authority_id} not found")


class AuthorityExpired(RosettaError):
    """The authority's accreditation lapsed; it may not act in a request."""

    def __init__(self, authority_id: UUID, expired_at: datetime | None) -> None:
        self.authority_id = authority_id
        self.expired_at = expired_at
        super().__init__(
            f"Authority {authority_id} accreditation expired at "
            f"{expired_at.isoformat() if expired_at else 'unknown'}"
        )


# ════════════════════════════════════════════════════════════════
# Lifecycle errors
# ════════════════════════════════════════════════════════════════


class RequestNotFound(RosettaError):
    def __init__(self, request_id: UUID) -> None:
        self.request_id = request_id
        super().__init__(f"Conversion request {request_id} not found")


class RequestAlreadyCompleted(RosettaError):
    """The request already has its one response; no second one is made."""

    def __init__(self, request_id: UUID) -> None:
        self.request_id = request_id
        super().__init__(f"Conversion request {request_id} is already completed")


class FieldDecryptionError(RosettaError):
    """A stored encrypted field could not be decoded or authenticated."""
    pass

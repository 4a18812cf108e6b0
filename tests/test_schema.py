"""
Tests for the domain schema — verifies the Pydantic models.

Validates:
- Input normalization of nation codes
- Request status derived from completion time
- Expiry predicates on schemas, authorities and responses
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from conftest import START, schema_definition
from rosetta.taxonomy.schema import (
    ClassificationSchema,
    ConversionRequest,
    ConversionRequestInput,
    ConversionResponse,
    DataObjectInput,
    MetadataInput,
    RequestStatus,
    as_naive_utc,
    utcnow,
)


class TestTime:
    def test_utcnow_is_naive(self):
        assert utcnow().tzinfo is None

    def test_aware_values_converted_to_utc(self):
        paris = timezone(timedelta(hours=2))
        value = datetime(2025, 10, 1, 11, 0, tzinfo=paris)
        assert as_naive_utc(value) == datetime(2025, 10, 1, 9, 0)

    def test_naive_values_pass_through(self):
        assert as_naive_utc(START) is START


class TestRequestInput:
    def make_input(self, source, targets):
        authority = uuid4()
        return ConversionRequestInput(
            user_id=uuid4(),
            authority_id=authority,
            data_object=DataObjectInput(title="t", description="d"),
            metadata=MetadataInput(
                identifier="urn:doc:1",
                originator_organization_id=authority,
                custodian_organization_id=authority,
                format="text/plain",
                security_classification="SECRET",
                domain="intel",
            ),
            source_nation_classification="SECRET",
            source_nation_code=source,
            target_nation_codes=targets,
        )

    def test_codes_upper_cased(self):
        payload = self.make_input(" usa ", ["gbr", "Fra"])
        assert payload.source_nation_code == "USA"
        assert payload.target_nation_codes == ["GBR", "FRA"]

    def test_duplicate_targets_keep_first_order(self):
        payload = self.make_input("USA", ["FRA", "gbr", "fra", "GBR", "DEU"])
        assert payload.target_nation_codes == ["FRA", "GBR", "DEU"]

    def test_empty_targets_accepted_by_model(self):
        assert self.make_input("USA", []).target_nation_codes == []

    def test_metadata_default_tags(self):
        assert self.make_input("USA", ["GBR"]).metadata.tags == ["joint_forces"]


class TestRequestStatus:
    def make_request(self, completed_at=None):
        return ConversionRequest(
            creator_id=uuid4(),
            authority_id=uuid4(),
            data_object_id=uuid4(),
            source_nation_classification="SECRET",
            source_nation_code="USA",
            target_nation_codes=["GBR"],
            completed_at=completed_at,
        )

    def test_pending_without_completion(self):
        request = self.make_request()
        assert request.status == RequestStatus.PENDING
        assert not request.is_completed

    def test_completed_with_completion(self):
        request = self.make_request(completed_at=START)
        assert request.status == RequestStatus.COMPLETED
        assert request.is_completed

    def test_status_serialized(self):
        assert self.make_request().model_dump()["status"] == RequestStatus.PENDING


class TestExpiry:
    def test_schema_without_expiry_always_valid(self):
        schema = ClassificationSchema(**schema_definition("GBR", uuid4(), uuid4()).model_dump())
        assert schema.is_valid(datetime(2999, 1, 1))

    def test_schema_expiry_is_exclusive(self):
        definition = schema_definition("GBR", uuid4(), uuid4(), expires_at=START)
        schema = ClassificationSchema(**definition.model_dump())

        assert schema.is_valid(START - timedelta(microseconds=1))
        assert not schema.is_valid(START)

    def test_schema_expiry_accepts_aware_now(self):
        definition = schema_definition("GBR", uuid4(), uuid4(), expires_at=START)
        schema = ClassificationSchema(**definition.model_dump())
        assert not schema.is_valid(START.replace(tzinfo=timezone.utc))

    def test_response_expiry(self):
        response = ConversionResponse(
            conversion_request_id=uuid4(),
            subject_data_id=uuid4(),
            nato_equivalent="NATO SECRET",
            target_nation_classifications={"GBR": "SECRET"},
            expires_at=START,
        )
        assert not response.is_expired(START - timedelta(microseconds=1))
        assert response.is_expired(START)
        assert response.is_expired(START + timedelta(seconds=1))

    def test_response_without_expiry_never_expires(self):
        response = ConversionResponse(
            conversion_request_id=uuid4(),
            subject_data_id=uuid4(),
            nato_equivalent="NATO SECRET",
            target_nation_classifications={},
        )
        assert not response.is_expired()

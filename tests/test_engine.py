"""
Tests for the two-step conversion engine.

Validates:
- Hub-and-spoke translation through the reference level
- Missing and expired schemas abort the whole conversion
- No fallback to an older schema version
- Audit data: schema versions used and earliest expiry
- Target policies are pluggable
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import START
from rosetta.conversion.engine import (
    AllOrNothingPolicy,
    ConversionEngine,
    TargetPolicy,
    require_valid,
)
from rosetta.errors import (
    AtLeastOneTargetRequired,
    SchemaExpired,
    SchemaNotFound,
    UnknownClassification,
)
from rosetta.taxonomy.levels import ReferenceLevel


class TestConvert:
    def test_secret_to_gbr_and_fra(self, world):
        result = world.services.engine.convert("USA", "SECRET", ["GBR", "FRA"])

        assert result.nato_equivalent == "NATO SECRET"
        assert result.reference_level == ReferenceLevel.SECRET
        assert result.target_classifications == {"GBR": "SECRET", "FRA": "Secret Défense"}

    def test_top_secret_goes_through_cosmic(self, world):
        result = world.services.engine.convert("DEU", "streng geheim", ["FRA"])
        assert result.nato_equivalent == "COSMIC TOP SECRET"
        assert result.target_classifications == {"FRA": "Très Secret Défense"}

    def test_source_code_is_case_insensitive(self, world):
        result = world.services.engine.convert(" usa", "Confidential", ["deu"])
        assert result.target_classifications == {"DEU": "VS-VERTRAULICH"}

    def test_duplicate_targets_translated_once(self, world):
        result = world.services.engine.convert("USA", "SECRET", ["gbr", "GBR", " FRA", "fra"])
        assert list(result.target_classifications) == ["GBR", "FRA"]

    def test_source_may_also_be_a_target(self, world):
        result = world.services.engine.convert("USA", "SECRET", ["USA"])
        assert result.target_classifications == {"USA": "SECRET"}

    def test_schema_versions_recorded(self, world):
        world.publish("GBR", version="v2.0")
        result = world.services.engine.convert("USA", "SECRET", ["GBR", "FRA"])
        assert result.schema_versions == {"USA": "v1.0", "GBR": "v2.0", "FRA": "v1.0"}

    def test_expires_at_is_earliest_schema_expiry(self, world):
        world.publish("GBR", version="v2.0", expires_at=START + timedelta(days=30))
        world.publish("FRA", version="v2.0", expires_at=START + timedelta(days=10))

        result = world.services.engine.convert("USA", "SECRET", ["GBR", "FRA"])
        assert result.expires_at == START + timedelta(days=10)

    def test_no_expiry_when_no_schema_expires(self, world):
        result = world.services.engine.convert("USA", "SECRET", ["GBR"])
        assert result.expires_at is None


class TestConvertFailures:
    def test_unknown_target_nation(self, world):
        with pytest.raises(SchemaNotFound) as exc_info:
            world.services.engine.convert("USA", "SECRET", ["XYZ"])
        assert exc_info.value.nation_code == "XYZ"

    def test_unknown_source_nation(self, world):
        with pytest.raises(SchemaNotFound) as exc_info:
            world.services.engine.convert("ITA", "SEGRETO", ["GBR"])
        assert exc_info.value.nation_code == "ITA"

    def test_one_missing_target_aborts_all(self, world):
        with pytest.raises(SchemaNotFound):
            world.services.engine.convert("USA", "SECRET", ["GBR", "XYZ", "FRA"])

    def test_empty_targets(self, world):
        with pytest.raises(AtLeastOneTargetRequired):
            world.services.engine.convert("USA", "SECRET", [])

    def test_blank_targets_count_as_empty(self, world):
        with pytest.raises(AtLeastOneTargetRequired):
            world.services.engine.convert("USA", "SECRET", ["", "  "])

    def test_unknown_source_text(self, world):
        with pytest.raises(UnknownClassification) as exc_info:
            world.services.engine.convert("GBR", "EYES ONLY", ["USA"])
        assert "OFFICIAL-SENSITIVE" in exc_info.value.valid_options

    def test_expired_target_aborts_all(self, world):
        world.services.registry.retire("FRA", "v1.0", at=START)

        with pytest.raises(SchemaExpired) as exc_info:
            world.services.engine.convert("USA", "SECRET", ["GBR", "FRA"])
        assert exc_info.value.nation_code == "FRA"
        assert exc_info.value.expired_at == START

    def test_expired_source_has_no_fallback(self, world):
        """v1.0 is still valid, but the newest version is the one that counts."""
        world.publish("USA", version="v2.0", expires_at=START)

        with pytest.raises(SchemaExpired) as exc_info:
            world.services.engine.convert("USA", "SECRET", ["GBR"])
        assert exc_info.value.nation_code == "USA"

    def test_expiry_equal_to_now_is_expired(self, world):
        deadline = START + timedelta(days=1)
        world.publish("GBR", version="v2.0", expires_at=deadline)
        engine = world.services.engine

        assert engine.convert("USA", "SECRET", ["GBR"], now=deadline - timedelta(seconds=1))
        with pytest.raises(SchemaExpired):
            engine.convert("USA", "SECRET", ["GBR"], now=deadline)

    def test_renewed_schema_converts_again(self, world):
        world.services.registry.retire("FRA", "v1.0", at=START)
        world.publish("FRA", version="v2.0")

        result = world.services.engine.convert("USA", "SECRET", ["FRA"])
        assert result.schema_versions["FRA"] == "v2.0"


class TestRequireValid:
    def test_none_is_not_found(self):
        with pytest.raises(SchemaNotFound):
            require_valid(None, "XYZ", START)


class TestPolicies:
    def test_default_policy_is_all_or_nothing(self, world):
        assert isinstance(world.services.engine.policy, AllOrNothingPolicy)

    def test_custom_policy_is_used(self, world):
        class SkipMissing(TargetPolicy):
            def translate(self, reference_level, target_codes, schemas, now):
                used = [schemas[c] for c in target_codes if c in schemas and schemas[c].is_valid(now)]
                return {s.nation_code: s.from_reference(reference_level.value) for s in used}, used

        engine = ConversionEngine(world.services.registry, policy=SkipMissing(), clock=world.clock)
        result = engine.convert("USA", "SECRET", ["GBR", "XYZ"])

        assert result.target_classifications == {"GBR": "SECRET"}
        assert result.schema_versions == {"USA": "v1.0", "GBR": "v1.0"}

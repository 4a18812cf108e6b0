"""
Tests for the reference vocabulary and the national mapping rules.

Validates:
- Fixed reference literals (COSMIC for top secret)
- to_reference: case/space insensitivity, first match wins, error listing
- from_reference: canonical labels and bare-word synonyms
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from conftest import NATIONAL_WORDS, schema_definition
from rosetta.errors import UnknownClassification, UnknownReferenceLevel
from rosetta.taxonomy.levels import (
    LEVEL_TABLE,
    REFERENCE_LABELS,
    ReferenceLevel,
    from_reference,
    to_reference,
)
from rosetta.taxonomy.schema import ClassificationSchema


def make_schema(code: str, words=None, from_words=None) -> ClassificationSchema:
    definition = schema_definition(code, uuid4(), uuid4(), words=words, from_words=from_words)
    return ClassificationSchema(**definition.model_dump())


class TestLevelTable:
    def test_reference_literals(self):
        assert REFERENCE_LABELS == [
            "NATO UNCLASSIFIED",
            "NATO RESTRICTED",
            "NATO CONFIDENTIAL",
            "NATO SECRET",
            "COSMIC TOP SECRET",
        ]

    def test_top_secret_is_cosmic(self):
        assert ReferenceLevel.TOP_SECRET.value == "COSMIC TOP SECRET"

    def test_table_is_ordered_lowest_first(self):
        assert [rule.level for rule in LEVEL_TABLE] == list(ReferenceLevel)


class TestToReference:
    @pytest.mark.parametrize("code", sorted(NATIONAL_WORDS))
    def test_every_level_maps_to_its_literal(self, code):
        schema = make_schema(code)
        for word, level in zip(NATIONAL_WORDS[code], ReferenceLevel):
            assert to_reference(schema, word) == level
            assert to_reference(schema, f"  {word.lower()}\t") == level

    def test_scenario_padded_lowercase_secret(self):
        schema = make_schema("USA")
        assert schema.to_reference(" secret ") == "NATO SECRET"

    def test_accented_words_match_case_insensitively(self):
        schema = make_schema("FRA")
        assert schema.to_reference("secret défense") == ReferenceLevel.SECRET

    def test_first_match_wins_on_duplicate_text(self):
        words = ("OPEN", "INTERNAL", "INTERNAL", "SECRET", "TOP SECRET")
        schema = make_schema("XYZ", words=words)
        assert schema.to_reference("internal") == ReferenceLevel.RESTRICTED

    def test_unknown_classification_lists_options(self):
        schema = make_schema("USA")
        with pytest.raises(UnknownClassification) as exc_info:
            schema.to_reference("ULTRA CLASSIFIED")

        error = exc_info.value
        assert error.nation_code == "USA"
        assert error.input_text == "ULTRA CLASSIFIED"
        assert error.valid_options == list(NATIONAL_WORDS["USA"])
        for word in NATIONAL_WORDS["USA"]:
            assert word in str(error)
        assert "USA" in str(error)

    def test_reference_label_is_not_a_national_word(self):
        with pytest.raises(UnknownClassification):
            make_schema("GBR").to_reference("NATO SECRET")


class TestFromReference:
    def test_canonical_labels(self):
        schema = make_schema("FRA")
        assert from_reference(schema, "NATO UNCLASSIFIED") == "Non Protégé"
        assert from_reference(schema, "NATO RESTRICTED") == "Diffusion Restreinte"
        assert from_reference(schema, "NATO CONFIDENTIAL") == "Confidentiel Défense"
        assert from_reference(schema, "NATO SECRET") == "Secret Défense"
        assert from_reference(schema, "COSMIC TOP SECRET") == "Très Secret Défense"

    @pytest.mark.parametrize(
        "synonym, field",
        [
            ("UNCLASSIFIED", "from_nato_unclassified"),
            ("restricted", "from_nato_restricted"),
            ("Confidential", "from_nato_confidential"),
            (" SECRET ", "from_nato_secret"),
            ("TOP SECRET", "from_nato_top_secret"),
            ("NATO TOP SECRET", "from_nato_top_secret"),
        ],
    )
    def test_bare_word_synonyms(self, synonym, field):
        schema = make_schema("DEU")
        assert schema.from_reference(synonym) == getattr(schema, field)

    def test_uses_from_fields_not_to_fields(self):
        to_words = ("U", "R", "C", "S", "TS")
        back = ("u-in", "r-in", "c-in", "s-in", "ts-in")
        schema = make_schema("XYZ", words=to_words, from_words=back)
        assert schema.from_reference("NATO SECRET") == "s-in"

    def test_returns_text_exactly_as_stored(self):
        schema = make_schema("FRA")
        assert schema.from_reference("nato secret") == "Secret Défense"

    def test_unknown_reference_lists_labels(self):
        with pytest.raises(UnknownReferenceLevel) as exc_info:
            make_schema("GBR").from_reference("NATO ULTRA")

        assert exc_info.value.input_text == "NATO ULTRA"
        assert exc_info.value.valid_options == REFERENCE_LABELS
        assert "COSMIC TOP SECRET" in str(exc_info.value)

"""Shared fixtures: an in-memory store, a controllable clock, and seeded nations."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from uuid import UUID, uuid4

import pytest

from rosetta.services import Services, build_services
from rosetta.store.crypto import FieldCipher
from rosetta.store.database import Database
from rosetta.taxonomy.schema import (
    ConversionRequestInput,
    DataObjectInput,
    MetadataInput,
    SchemaDefinition,
)

START = datetime(2025, 10, 1, 9, 0, 0)

# (unclassified, restricted, confidential, secret, top secret)
NATIONAL_WORDS = {
    "USA": ("UNCLASSIFIED", "CONTROLLED UNCLASSIFIED", "CONFIDENTIAL", "SECRET", "TOP SECRET"),
    "GBR": ("OFFICIAL", "OFFICIAL-SENSITIVE", "CONFIDENTIAL", "SECRET", "TOP SECRET"),
    "FRA": (
        "Non Protégé",
        "Diffusion Restreinte",
        "Confidentiel Défense",
        "Secret Défense",
        "Très Secret Défense",
    ),
    "DEU": (
        "OFFEN",
        "VS-NUR FÜR DEN DIENSTGEBRAUCH",
        "VS-VERTRAULICH",
        "GEHEIM",
        "STRENG GEHEIM",
    ),
}

NATION_NAMES = {
    "USA": "United States",
    "GBR": "United Kingdom",
    "FRA": "France",
    "DEU": "Germany",
}


class FakeClock:
    """Returns a fixed instant that moves forward one step on every read."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


def schema_definition(
    nation_code: str,
    authority_id: UUID,
    creator_id: UUID,
    words: tuple[str, ...] | None = None,
    from_words: tuple[str, ...] | None = None,
    version: str = "v1.0",
    expires_at: datetime | None = None,
    caveats: str = "",
) -> SchemaDefinition:
    to = words or NATIONAL_WORDS[nation_code]
    back = from_words or to
    return SchemaDefinition(
        creator_id=creator_id,
        nation_code=nation_code,
        to_nato_unclassified=to[0],
        to_nato_restricted=to[1],
        to_nato_confidential=to[2],
        to_nato_secret=to[3],
        to_nato_top_secret=to[4],
        from_nato_unclassified=back[0],
        from_nato_restricted=back[1],
        from_nato_confidential=back[2],
        from_nato_secret=back[3],
        from_nato_top_secret=back[4],
        caveats=caveats,
        version=version,
        authority_id=authority_id,
        expires_at=expires_at,
    )


@dataclass
class World:
    """Seeded directory: one authority per nation, one schema per nation."""

    services: Services
    clock: FakeClock
    creator_id: UUID
    authorities: dict[str, UUID] = field(default_factory=dict)

    def publish(self, nation_code: str, **kwargs):
        return self.services.registry.publish(
            schema_definition(
                nation_code, self.authorities[nation_code], self.creator_id, **kwargs
            )
        )

    def payload(
        self,
        source: str = "USA",
        classification: str = "SECRET",
        targets: list[str] | None = None,
        authority: str | None = None,
        title: str = "Operation Northern Lights: logistics annex",
    ) -> ConversionRequestInput:
        authority_id = self.authorities[authority or source]
        return ConversionRequestInput(
            user_id=self.creator_id,
            authority_id=authority_id,
            data_object=DataObjectInput(
                title=title,
                description="Fuel and rations plan for the forward operating base.",
            ),
            metadata=MetadataInput(
                identifier=f"urn:doc:{uuid4()}",
                authorization_reference="OPORD 17-25",
                originator_organization_id=authority_id,
                custodian_organization_id=authority_id,
                format="application/pdf",
                format_size=48213,
                security_classification=classification,
                releasable_to_countries=targets if targets is not None else ["GBR", "FRA"],
                releasable_to_organizations=["NATO"],
                domain="logistics",
            ),
            source_nation_classification=classification,
            source_nation_code=source,
            target_nation_codes=targets if targets is not None else ["GBR", "FRA"],
        )


def seed_world(services: Services, clock: FakeClock) -> World:
    """Register every nation in NATION_NAMES with one authority and a v1.0 schema."""
    creator_id = uuid4()
    world = World(services=services, clock=clock, creator_id=creator_id)
    for code, name in NATION_NAMES.items():
        services.directory.create_nation(code, name, creator_id)
        authority = services.directory.create_authority(
            code,
            f"{name} National Security Authority",
            f"nsa@{code.lower()}.example",
            "+1 555 0100",
            creator_id,
        )
        world.authorities[code] = authority.id
        world.publish(code)
    return world


@pytest.fixture
def cipher() -> FieldCipher:
    return FieldCipher(base64.b64decode(FieldCipher.generate_key()))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def services(cipher, clock) -> Services:
    db = Database("sqlite://")
    db.initialize()
    yield build_services(db, cipher, clock=clock)
    db.dispose()


@pytest.fixture
def world(services, clock) -> World:
    return seed_world(services, clock)

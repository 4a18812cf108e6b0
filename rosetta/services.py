"""Wiring of the registry, directory, engine and lifecycle around one database."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from rosetta.conversion.engine import ConversionEngine, TargetPolicy
from rosetta.conversion.lifecycle import ConversionLifecycle
from rosetta.conversion.records import ConversionRecords
from rosetta.registry.directory import OrganizationDirectory
from rosetta.registry.schemas import SchemaRegistry
from rosetta.store.crypto import FieldCipher
from rosetta.store.database import Database
from rosetta.taxonomy.schema import utcnow


@dataclass
class Services:
    db: Database
    directory: OrganizationDirectory
    registry: SchemaRegistry
    records: ConversionRecords
    engine: ConversionEngine
    lifecycle: ConversionLifecycle
    clock: Callable[[], datetime] = utcnow


def build_services(
    db: Database,
    cipher: FieldCipher,
    clock: Callable[[], datetime] = utcnow,
    policy: TargetPolicy | None = None,
) -> Services:
    directory = OrganizationDirectory(db, clock=clock)
    registry = SchemaRegistry(db, clock=clock)
    records = ConversionRecords(db, cipher, clock=clock)
    engine = ConversionEngine(registry, policy=policy, clock=clock)
    lifecycle = ConversionLifecycle(records, directory, engine, clock=clock)
    return Services(
        db=db,
        directory=directory,
        registry=registry,
        records=records,
        engine=engine,
        lifecycle=lifecycle,
        clock=clock,
    )

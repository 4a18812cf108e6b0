"""
Request/Response Lifecycle — intake, conversion and completion of requests.

State machine:

    PENDING ──process_and_convert (success)──▶ COMPLETED

There is no failed state. A conversion that raises leaves the request
PENDING so it can be retried, for example once an expired schema has been
renewed. Intake (``submit``) and conversion (``process_and_convert``) are
separate steps, so requests can be queued and processed later.

At most one response exists per request. Within a process, calls for the
same request id are serialized by a per-request lock; across processes the
unique constraint on ``conversion_responses.conversion_request_id`` rejects
a second response. Processing a completed request raises
``RequestAlreadyCompleted``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from rosetta.conversion.engine import ConversionEngine, ConversionResult
from rosetta.conversion.records import ConversionRecords
from rosetta.errors import (
    AtLeastOneTargetRequired,
    ConversionError,
    RequestAlreadyCompleted,
    RequestNotFound,
)
from rosetta.registry.directory import OrganizationDirectory
from rosetta.taxonomy.schema import (
    ConversionRequest,
    ConversionRequestInput,
    ConversionResponse,
    utcnow,
)

logger = logging.getLogger(__name__)


class ConversionLifecycle:
    """
    Orchestrates conversion requests from intake to response.

    Usage:
        lifecycle = ConversionLifecycle(records, directory, engine)
        request = lifecycle.submit(payload)          # PENDING
        response = lifecycle.process_and_convert(request)  # COMPLETED
    """

    def __init__(
        self,
        records: ConversionRecords,
        directory: OrganizationDirectory,
        engine: ConversionEngine,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.records = records
        self.directory = directory
        self.engine = engine
        self.clock = clock
        self._locks: dict[UUID, _FlightSlot] = {}
        self._locks_guard = threading.Lock()

    def submit(self, payload: ConversionRequestInput) -> ConversionRequest:
        """
        Accept a conversion request payload.

        Creates the data object, its metadata, and the pending request, in
        that order and in separate transactions. Submitting the same payload
        twice creates two data objects.

        Raises:
            AtLeastOneTargetRequired: No target nation codes.
            AuthorityNotFound: Unknown requesting authority.
            AuthorityExpired: Requesting authority's accreditation lapsed.
        """
        if not payload.target_nation_codes:
            raise AtLeastOneTargetRequired()
        self.directory.require_active_authority(payload.authority_id)

        data_object = self.records.create_data_object(payload.data_object, payload.user_id)
        self.records.create_metadata(payload.metadata, data_object.id)

        request = self.records.create_request(
            creator_id=payload.user_id,
            authority_id=payload.authority_id,
            data_object_id=data_object.id,
            source_nation_code=payload.source_nation_code,
            source_nation_classification=payload.source_nation_classification,
            target_nation_codes=payload.target_nation_codes,
        )
        logger.info(
            "Conversion request submitted: id=%s source=%s targets=%s",
            request.id, request.source_nation_code, ",".join(request.target_nation_codes),
        )
        return request

    def process_and_convert(self, request: ConversionRequest | UUID) -> ConversionResponse:
        """
        Convert a pending request and record its single response.

        Raises:
            RequestNotFound: Unknown request id.
            RequestAlreadyCompleted: The request already has its response.
            ConversionError: Any engine failure, unchanged. The request stays
                pending and no response is written.
        """
        request_id = request.id if isinstance(request, ConversionRequest) else request

        with self._single_flight(request_id):
            current = self.records.get_request(request_id)
            if current is None:
                raise RequestNotFound(request_id)
            if current.is_completed:
                raise RequestAlreadyCompleted(request_id)

            started = time.perf_counter()
            try:
                result = self.engine.convert(
                    current.source_nation_code,
                    current.source_nation_classification,
                    current.target_nation_codes,
                    now=self.clock(),
                )
            except ConversionError as exc:
                logger.warning(
                    "Conversion failed, request left pending: id=%s error=%s",
                    request_id, exc,
                )
                raise

            response = self.records.record_response(
                request_id=request_id,
                nato_equivalent=result.nato_equivalent,
                target_nation_classifications=result.target_classifications,
                schema_versions=result.schema_versions,
                expires_at=result.expires_at,
            )
            logger.info(
                "Conversion request completed: id=%s reference=%s duration_ms=%.1f",
                request_id, response.nato_equivalent, (time.perf_counter() - started) * 1000,
            )
            return response

    def process_pending(self) -> tuple[list[ConversionResponse], dict[UUID, Exception]]:
        """
        Attempt every pending request once.

        Returns:
            Tuple of (responses created, errors keyed by request id). Failed
            requests stay pending.
        """
        completed: list[ConversionResponse] = []
        failures: dict[UUID, Exception] = {}
        for pending in self.records.pending_requests():
            try:
                completed.append(self.process_and_convert(pending))
            except (ConversionError, RequestAlreadyCompleted) as exc:
                failures[pending.id] = exc
        return completed, failures

    def preview(
        self,
        source_nation_code: str,
        source_classification: str,
        target_nation_codes: Iterable[str],
    ) -> ConversionResult:
        """Run a conversion without creating any record."""
        return self.engine.convert(
            source_nation_code, source_classification, target_nation_codes, now=self.clock(),
        )

    # ── Internal ────────────────────────────────────────────────

    @contextmanager
    def _single_flight(self, request_id: UUID) -> Iterator[None]:
        """Hold the request's lock; the slot is dropped once nobody uses it."""
        with self._locks_guard:
            slot = self._locks.setdefault(request_id, _FlightSlot())
            slot.users += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._locks_guard:
                slot.users -= 1
                if slot.users == 0:
                    del self._locks[request_id]


@dataclass
class _FlightSlot:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0

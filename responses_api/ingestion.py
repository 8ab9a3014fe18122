# ============================================================================
# MODULE CONTEXT - INGESTION PIPELINE
# ============================================================================
# STATUS: Pipeline - Survey response batch insertion
# PURPOSE: Validate a response batch, stamp id/survey/created, insert concurrently
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: IngestionPipeline
# DEPENDENCIES: concurrent.futures, uuid, util_logger, geoquery.errors
# PATTERNS: Fan-out / fan-in with index-addressed result slots
# ENTRY_POINTS: pipeline.insert_batch(survey_id, body)
# ============================================================================

"""
Ingestion Pipeline - concurrent batch insert of survey responses.

    body = {"responses": [{...}, {...}, ...]}

1. Validate the whole batch before touching the store (MalformedBatchError)
2. Give each item a UUID id, the survey id and a created timestamp.
   Timestamps increase by one microsecond per input position so that the
   (created, seq) read order reproduces the caller's order even though the
   concurrent inserts commit in any order.
3. Insert every record with repository.insert() on a bounded thread pool.
   Each insert is its own transaction.
4. Place each result in the slot of its input position; output[i] is the
   record for input[i].

Partial failure is best-effort: records that committed stay committed.
PartialBatchFailure carries exactly those records (input order) and the
input indices that failed, so what the caller is told matches the store.
When nothing was stored and a StoreError was among the failures, that
StoreError is raised instead: the store is down, not the batch.
"""

import math
import numbers
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from geoquery.errors import MalformedBatchError, PartialBatchFailure, StoreError
from util_logger import LoggerFactory, ComponentType, log_exceptions

from .repository import ResponseRepository, isoformat_utc

_logger = LoggerFactory.create_logger(ComponentType.PIPELINE, "IngestionPipeline")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IngestionPipeline:
    """
    Concurrent per-item insertion of a response batch.

    Args:
        repository: Anything with insert(record) -> record
        max_workers: Thread pool width (capped at the batch size)
        id_factory: Generates response ids (UUID4 strings by default)
        clock: Returns the batch's base timestamp (aware UTC datetime)
    """

    def __init__(
        self,
        repository: ResponseRepository,
        max_workers: int = 8,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.repository = repository
        self.max_workers = max(1, max_workers)
        self.id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self.clock = clock or _utc_now

    def insert_batch(self, survey_id: str, body: Any) -> List[Dict[str, Any]]:
        """
        Insert every response of a batch.

        Returns:
            Stored records in input order

        Raises:
            MalformedBatchError: body is not {"responses": [objects]} or a
                centroid is malformed; nothing was inserted
            PartialBatchFailure: some inserts failed; the others are stored
            StoreError: every insert failed and at least one with a store
                error; the first by input position is re-raised
        """
        items = self._extract_items(body)
        if not items:
            _logger.info(f"Empty batch for survey '{survey_id}'")
            return []

        records = self._prepare(survey_id, items)
        persisted, failures = self._fan_out(records)

        if failures:
            _logger.error(
                f"{len(failures)} of {len(records)} inserts failed for survey '{survey_id}'",
                extra={'custom_dimensions': {
                    'survey_id': survey_id,
                    'batch_size': len(records),
                    'failed_indices': [index for index, _ in failures]
                }}
            )
            stored = [record for record in persisted if record is not None]
            if not stored:
                store_errors = [error for _, error in failures if isinstance(error, StoreError)]
                if store_errors:
                    raise store_errors[0]
            raise PartialBatchFailure(
                persisted=stored,
                failures=[(index, str(error)) for index, error in failures],
                total=len(records)
            )

        _logger.info(
            f"Inserted {len(records)} responses into survey '{survey_id}'",
            extra={'custom_dimensions': {'survey_id': survey_id, 'batch_size': len(records)}}
        )
        return persisted

    # ------------------------------------------------------------------
    # Validation / preparation
    # ------------------------------------------------------------------

    @staticmethod
    def _extract_items(body: Any) -> List[Dict[str, Any]]:
        if not isinstance(body, dict):
            raise MalformedBatchError("Request body must be a JSON object with a 'responses' list")

        items = body.get("responses")
        if not isinstance(items, list):
            raise MalformedBatchError("'responses' must be a list of response objects")

        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise MalformedBatchError(f"Response at index {index} is not an object")
            _validate_geo_info(index, item.get("geo_info"))

        return items

    def _prepare(self, survey_id: str, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        base = self.clock()
        records = []
        for index, item in enumerate(items):
            record = dict(item)
            record["id"] = self.id_factory()
            record["survey"] = survey_id
            record["created"] = isoformat_utc(base + timedelta(microseconds=index))
            records.append(record)
        return records

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    @log_exceptions(logger=_logger)
    def _fan_out(
        self,
        records: List[Dict[str, Any]]
    ) -> Tuple[List[Optional[Dict[str, Any]]], List[Tuple[int, Exception]]]:
        """
        Run every insert and join by counting completions.

        Returns:
            (slots, failures): slots[i] is the stored record for input i or
            None if it failed; failures are (index, exception) sorted by index
        """
        total = len(records)
        slots: List[Optional[Dict[str, Any]]] = [None] * total
        failures: List[Tuple[int, Exception]] = []
        completed = 0

        with ThreadPoolExecutor(max_workers=min(self.max_workers, total)) as executor:
            futures = {
                executor.submit(self.repository.insert, record): index
                for index, record in enumerate(records)
            }
            for future in as_completed(futures):
                index = futures[future]
                completed += 1
                error = future.exception()
                if error is None:
                    slots[index] = future.result()
                else:
                    _logger.warning(f"Insert {index} of {total} failed: {error}")
                    failures.append((index, error))

        _logger.debug(f"Batch fan-out finished: {completed}/{total} inserts completed")
        failures.sort(key=lambda failure: failure[0])
        return slots, failures


def _validate_geo_info(index: int, geo_info: Any) -> None:
    if geo_info is None:
        return
    if not isinstance(geo_info, dict):
        raise MalformedBatchError(f"Response at index {index}: geo_info must be an object")

    centroid = geo_info.get("centroid")
    if centroid is None:
        return
    if (
        not isinstance(centroid, list)
        or len(centroid) != 2
        or not all(isinstance(c, numbers.Real) and not isinstance(c, bool) for c in centroid)
        or not all(math.isfinite(c) for c in centroid)
    ):
        raise MalformedBatchError(
            f"Response at index {index}: geo_info.centroid must be [lon, lat] numbers"
        )

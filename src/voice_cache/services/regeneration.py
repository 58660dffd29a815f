"""
RegenerationEngine - forced re-synthesis of one owner or a whole corpus.

Single-item regeneration surfaces provider failures as a failed outcome
and never removes the audio an owner already had. Bulk regeneration
runs the same step for every owner and keeps going past any per-item
failure, including store errors; the aggregate is the only report.

Bulk runs are not atomic. Partial completion is a normal result.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from time import perf_counter
from typing import Iterable, List, Optional

from voice_cache.cache.models import BulkRegenerationResult, RegenerationOutcome
from voice_cache.cache.staleness import is_stale
from voice_cache.core.config import Defaults
from voice_cache.core.errors import ErrorCode, GenerationFailed, OwnerNotFoundError, VoiceCacheError
from voice_cache.core.logging import error, get_logger, info, success, warn
from voice_cache.core.metrics import metrics
from voice_cache.services.coordinator import RequestCoordinator
from voice_cache.services.directory import MessageDirectory

_LOG = get_logger("voice-cache.regeneration")


def _elapsed_ms(t0: float) -> float:
    return (perf_counter() - t0) * 1000.0


def _dedupe(owner_ids: Iterable[str]) -> List[str]:
    seen = set()
    ordered = []
    for owner_id in owner_ids:
        if owner_id not in seen:
            seen.add(owner_id)
            ordered.append(owner_id)
    return ordered


class RegenerationEngine:
    """
    Args:
        coordinator: Performs the locked synthesize-and-save step.
        directory: Supplies text and voice per owner, and the bulk corpus.
        max_workers: Owners regenerated in parallel during bulk runs.
        record_successes: Keep successful outcomes in bulk results. When
            False only failures are listed, bounding memory on large runs.
    """

    def __init__(
        self,
        coordinator: RequestCoordinator,
        directory: MessageDirectory,
        max_workers: int = Defaults.REGENERATION_MAX_WORKERS,
        record_successes: bool = Defaults.REGENERATION_RECORD_SUCCESSES,
    ):
        self.coordinator = coordinator
        self.directory = directory
        self.max_workers = max(1, int(max_workers))
        self.record_successes = record_successes

    def regenerate_one(self, owner_id: str) -> RegenerationOutcome:
        """
        Re-synthesize the owner's message even if its audio is fresh.

        Returns:
            Outcome with succeeded=False and the error when the owner is
            unknown or synthesis fails.

        Raises:
            StorageError: The store failed; the previous entry is intact.
        """
        t0 = perf_counter()
        message = self.directory.get_message(owner_id)
        if message is None:
            err = OwnerNotFoundError(owner_id)
            warn(_LOG, "regeneration_skipped", owner_id=owner_id, code=err.code)
            metrics.record_regeneration("failed")
            return RegenerationOutcome(
                owner_id=owner_id,
                succeeded=False,
                duration_ms=_elapsed_ms(t0),
                error_message=err.message,
                error_code=err.code,
            )

        try:
            entry = self.coordinator.regenerate(owner_id, message.text, message.voice_config)
        except GenerationFailed as e:
            warn(_LOG, "regeneration_failed", owner_id=owner_id, code=e.code, error=e.message)
            metrics.record_regeneration("failed")
            return RegenerationOutcome(
                owner_id=owner_id,
                succeeded=False,
                duration_ms=_elapsed_ms(t0),
                error_message=e.message,
                error_code=e.code,
            )

        metrics.record_regeneration("succeeded")
        return RegenerationOutcome(
            owner_id=owner_id,
            succeeded=True,
            duration_ms=_elapsed_ms(t0),
            key=entry.key,
        )

    def _regenerate_captured(self, owner_id: str) -> RegenerationOutcome:
        t0 = perf_counter()
        try:
            return self.regenerate_one(owner_id)
        except VoiceCacheError as e:
            error(_LOG, "regeneration_error", owner_id=owner_id, code=e.code, error=e.message)
            code, message = e.code, e.message
        except Exception as e:
            error(_LOG, "regeneration_error", owner_id=owner_id, code=ErrorCode.INTERNAL_ERROR, error=repr(e))
            code, message = ErrorCode.INTERNAL_ERROR, str(e) or type(e).__name__

        metrics.record_regeneration("failed")
        return RegenerationOutcome(
            owner_id=owner_id,
            succeeded=False,
            duration_ms=_elapsed_ms(t0),
            error_message=message,
            error_code=code,
        )

    def regenerate_all(self, owner_ids: Optional[Iterable[str]] = None) -> BulkRegenerationResult:
        """
        Regenerate every owner, continuing past failures.

        Args:
            owner_ids: Owners to process; defaults to the whole directory.
                Duplicates are processed once, at their first position.

        Returns:
            Counts plus outcomes in input order.
        """
        t0 = perf_counter()
        ids = _dedupe(owner_ids if owner_ids is not None else self.directory.list_owner_ids())
        info(_LOG, "bulk_regeneration_start", total=len(ids), workers=self.max_workers)

        if self.max_workers == 1 or len(ids) <= 1:
            outcomes = [self._regenerate_captured(owner_id) for owner_id in ids]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="voice-cache-regen") as pool:
                outcomes = list(pool.map(self._regenerate_captured, ids))

        succeeded = sum(1 for o in outcomes if o.succeeded)
        result = BulkRegenerationResult(
            total=len(outcomes),
            succeeded=succeeded,
            failed=len(outcomes) - succeeded,
            duration_ms=_elapsed_ms(t0),
            outcomes=outcomes if self.record_successes else [o for o in outcomes if not o.succeeded],
        )

        log = success if result.failed == 0 else warn
        log(
            _LOG, "bulk_regeneration_done",
            total=result.total, succeeded=result.succeeded, failed=result.failed,
            seconds=round(result.duration_ms / 1000.0, 3),
        )
        return result

    def needs_regeneration(self, owner_id: str) -> bool:
        """
        Whether the owner's current audio is missing or out of date.

        Raises:
            OwnerNotFoundError: The directory does not know the owner.
        """
        message = self.directory.get_message(owner_id)
        if message is None:
            raise OwnerNotFoundError(owner_id)
        current = self.coordinator.store.get_current_info(owner_id)
        return is_stale(current, message.text, message.voice_config)

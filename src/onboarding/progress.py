"""
Progress Store.

Persists and restores a flow's ProgressState through a KeyValueStore under two
logical keys: one for the answers snapshot, one for the position record. A third
key holds the completion marker written once the profile has been committed.

Persistence is a convenience, never a correctness requirement. When the
underlying store fails the ProgressStore switches to memory-only operation for
the rest of the process and reports success with a PERSISTENCE warning.
Clearing progress and writing the completion marker still go to the store in
memory-only mode: a committed profile must never leave resumable progress behind.
"""

import json
import logging
from dataclasses import dataclass
from typing import Generic, TypeVar

from .errors import ErrorKind, FlowError
from .state import CompletionRecord, ProgressState, ProgressStateError
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class StoreResult(Generic[T]):
    """Result of a ProgressStore call. ok is always True; warning carries degradation."""
    value: T | None = None
    warning: FlowError | None = None

    @property
    def ok(self) -> bool:
        return True

    @property
    def degraded(self) -> bool:
        return self.warning is not None


def _warning(code: str, message: str) -> FlowError:
    return FlowError(ErrorKind.PERSISTENCE, code, message)


class ProgressStore:
    """Best-effort durable storage for one flow's progress."""

    def __init__(
        self,
        store: KeyValueStore | None,
        flow_name: str,
        total_steps: int,
        key_prefix: str | None = None,
    ):
        if key_prefix is None:
            from .config import settings
            key_prefix = settings.key_prefix
        self._store = store
        self._total_steps = total_steps
        self._memory: ProgressState | None = None
        self._degraded = store is None
        self.answers_key = f"{key_prefix}:{flow_name}:answers"
        self.progress_key = f"{key_prefix}:{flow_name}:progress"
        self.completed_key = f"{key_prefix}:{flow_name}:completed"
        self._completion: CompletionRecord | None = None

    @property
    def degraded(self) -> bool:
        """True once the store has been abandoned for memory-only mode."""
        return self._degraded

    def _degrade(self, action: str, error: Exception) -> FlowError:
        if not self._degraded:
            logger.warning(f"Progress store unavailable during {action}, continuing in memory only: {error}")
        self._degraded = True
        return _warning("storage_unavailable", f"Progress could not be {action}; continuing without saving")

    def _memory_only_warning(self) -> FlowError:
        return _warning("memory_only", "Progress is kept in memory only")

    def save(self, state: ProgressState) -> StoreResult[None]:
        """
        Stamp saved_at and write both records.

        The position record is written last. If either write fails both records
        are removed, so a later process never loads new answers with an old
        position.
        """
        state.touch()
        self._memory = state.copy()

        if self._degraded:
            return StoreResult(warning=self._memory_only_warning())

        try:
            self._store.set(self.answers_key, json.dumps(state.answers).encode("utf-8"))
            self._store.set(self.progress_key, json.dumps(state.progress_dict()).encode("utf-8"))
        except Exception as e:
            warning = self._degrade("saved", e)
            self._remove_quietly(self.progress_key, self.answers_key)
            return StoreResult(warning=warning)

        logger.debug(f"Saved progress: step={state.current_step}, completed={sorted(state.completed_steps)}")
        return StoreResult()

    def _remove_quietly(self, *keys: str) -> None:
        for key in keys:
            try:
                self._store.remove(key)
            except Exception as e:
                logger.debug(f"Could not remove {key!r} after failed save: {e}")

    def load(self) -> StoreResult[ProgressState]:
        """
        Restore saved progress.

        Returns value=None when nothing usable is stored. Records that fail to
        decode or fall outside the registry bounds are dropped with a warning.
        """
        if self._degraded:
            restored = self._memory.copy() if self._memory else None
            return StoreResult(value=restored, warning=self._memory_only_warning())

        try:
            raw_progress = self._store.get(self.progress_key)
            raw_answers = self._store.get(self.answers_key)
        except Exception as e:
            warning = self._degrade("loaded", e)
            restored = self._memory.copy() if self._memory else None
            return StoreResult(value=restored, warning=warning)

        if raw_progress is None:
            return StoreResult()

        try:
            data = json.loads(raw_progress.decode("utf-8"))
            data["answers"] = json.loads(raw_answers.decode("utf-8")) if raw_answers else {}
            state = ProgressState.from_dict(data)
            state.check(self._total_steps)
        except (ValueError, TypeError, UnicodeDecodeError, ProgressStateError) as e:
            logger.warning(f"Discarding unreadable saved progress: {e}")
            return StoreResult(warning=_warning("corrupt_progress", "Saved progress was unreadable and was discarded"))

        self._memory = state.copy()
        logger.debug(f"Loaded progress: step={state.current_step}, completed={sorted(state.completed_steps)}")
        return StoreResult(value=state)

    def clear(self) -> StoreResult[None]:
        """
        Remove both progress records.

        Attempted against the store even in memory-only mode.
        """
        self._memory = None
        return self._remove("cleared", self.answers_key, self.progress_key)

    def reset(self) -> StoreResult[None]:
        """Remove the progress records and the completion marker."""
        self._memory = None
        self._completion = None
        return self._remove("reset", self.answers_key, self.progress_key, self.completed_key)

    def _remove(self, action: str, *keys: str) -> StoreResult[None]:
        if self._store is None:
            return StoreResult(warning=self._memory_only_warning())

        try:
            for key in keys:
                self._store.remove(key)
        except Exception as e:
            return StoreResult(warning=self._degrade(action, e))

        logger.debug(f"Removed {len(keys)} records ({action})")
        return StoreResult()

    # =========================================================================
    # Completion marker
    # =========================================================================

    def mark_completed(self, profile_id: str) -> StoreResult[CompletionRecord]:
        """Record that the profile was committed. Attempted even in memory-only mode."""
        record = CompletionRecord.now(profile_id)
        self._completion = record
        if self._store is None:
            return StoreResult(value=record, warning=self._memory_only_warning())

        try:
            self._store.set(self.completed_key, json.dumps(record.to_dict()).encode("utf-8"))
        except Exception as e:
            return StoreResult(value=record, warning=self._degrade("marked complete", e))

        logger.debug(f"Marked flow complete: profile={profile_id}")
        return StoreResult(value=record)

    def load_completion(self) -> StoreResult[CompletionRecord]:
        """The completion marker, or value=None when the flow was never completed."""
        if self._store is None:
            return StoreResult(value=self._completion, warning=self._memory_only_warning())

        try:
            raw = self._store.get(self.completed_key)
        except Exception as e:
            return StoreResult(value=self._completion, warning=self._degrade("loaded", e))

        if raw is None:
            return StoreResult(value=self._completion)

        try:
            record = CompletionRecord.from_dict(json.loads(raw.decode("utf-8")))
        except (ValueError, UnicodeDecodeError, ProgressStateError) as e:
            logger.warning(f"Discarding unreadable completion marker: {e}")
            return StoreResult(warning=_warning("corrupt_completion", "Saved completion marker was unreadable"))

        self._completion = record
        return StoreResult(value=record)

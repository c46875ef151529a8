"""
Resumable run state for the migration.

The checkpoint records how far the import got (last durable source row),
which properties were created and which rows or images failed. Every
mutation is persisted immediately so that a crash loses at most the batch in
flight. Batch outcomes go through add_successes / add_failures, which write
once per batch rather than once per record.
"""

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional, Union
from pydantic import ValidationError as PydanticValidationError
from core.exceptions import CheckpointError
from models.base import FailurePhase, MigrationPhase
from schemas.migration import FailedProperty, RunCheckpoint, utc_now_iso
import logging

logger = logging.getLogger(__name__)


class CheckpointBackend(ABC):
    """Where the serialized checkpoint lives"""

    @abstractmethod
    def read(self) -> Optional[str]:
        """Return the persisted document, or None if nothing is stored"""
        pass

    @abstractmethod
    def write(self, document: str) -> None:
        pass

    @abstractmethod
    def remove(self) -> None:
        pass

    @abstractmethod
    def exists(self) -> bool:
        pass


class JSONFileCheckpointBackend(CheckpointBackend):
    """
    Checkpoint stored as a JSON file.

    Writes go to a sibling temp file which is then renamed over the target,
    so a reader never observes a half-written checkpoint.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def read(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise CheckpointError(
                "Failed to read checkpoint",
                context={"operation": "load", "checkpoint_path": str(self.path)},
                original_exception=e
            )

    def write(self, document: str) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(document, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise CheckpointError(
                "Failed to save checkpoint",
                context={"operation": "save", "checkpoint_path": str(self.path)},
                original_exception=e
            )

    def remove(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise CheckpointError(
                "Failed to delete checkpoint",
                context={"operation": "delete", "checkpoint_path": str(self.path)},
                original_exception=e
            )

    def exists(self) -> bool:
        return self.path.exists()


class InMemoryCheckpointBackend(CheckpointBackend):
    """Process-local backend, used by tests and dry runs"""

    def __init__(self, document: Optional[str] = None):
        self.document = document

    def read(self) -> Optional[str]:
        return self.document

    def write(self, document: str) -> None:
        self.document = document

    def remove(self) -> None:
        self.document = None

    def exists(self) -> bool:
        return self.document is not None


class CheckpointStore:
    """
    Load-or-initialize wrapper around a RunCheckpoint.

    Invariant: last_processed_row never decreases except through reset().
    """

    def __init__(self, backend: CheckpointBackend):
        self.backend = backend
        self.state = self._load()

    def _load(self) -> RunCheckpoint:
        document = self.backend.read()
        if not document or not document.strip():
            if document is not None:
                logger.warning("Checkpoint is empty, starting fresh")
            return RunCheckpoint()

        try:
            state = RunCheckpoint(**json.loads(document))
        except (ValueError, TypeError, PydanticValidationError) as e:
            logger.warning(f"Checkpoint is unreadable, starting fresh: {e}")
            return RunCheckpoint()

        logger.info(
            f"Loaded checkpoint: phase={state.phase}, "
            f"last_processed_row={state.last_processed_row}/{state.total_rows}"
        )
        return state

    def save(self) -> None:
        self.state.last_updated_at = utc_now_iso()
        self.backend.write(json.dumps(self.state.dict(), indent=2))

    def exists(self) -> bool:
        return self.backend.exists()

    def reset(self) -> None:
        self.state = RunCheckpoint()
        self.save()
        logger.info("Checkpoint reset")

    def delete(self) -> None:
        self.backend.remove()
        self.state = RunCheckpoint()
        logger.info("Checkpoint deleted")

    def set_phase(self, phase: MigrationPhase) -> None:
        self.state.phase = MigrationPhase(phase).value
        self.save()

    def set_total_rows(self, total_rows: int) -> None:
        self.state.total_rows = total_rows
        self.save()

    def update_progress(self, row: int) -> None:
        """
        Record row (1-based) as the last durable row.

        Raises:
            CheckpointError: If row is behind the current progress
        """
        if row < self.state.last_processed_row:
            raise CheckpointError(
                "Checkpoint progress cannot move backwards",
                context={
                    "operation": "update_progress",
                    "current_row": self.state.last_processed_row,
                    "requested_row": row
                }
            )
        self.state.last_processed_row = row
        self.save()

    def add_success(self, property_id: str) -> None:
        self.state.successful_properties.append(property_id)
        self.save()

    def add_failure(
        self,
        external_id: str,
        error: str,
        row: int = 0,
        phase: FailurePhase = FailurePhase.IMPORT
    ) -> None:
        self.state.failed_properties.append(
            FailedProperty(external_id=external_id, row=row, error=error, phase=phase)
        )
        self.save()

    def add_successes(self, property_ids: Iterable[str]) -> None:
        """Append a whole batch of created properties with a single write"""
        property_ids = list(property_ids)
        if not property_ids:
            return
        self.state.successful_properties.extend(property_ids)
        self.save()

    def add_failures(self, failures: Iterable[FailedProperty]) -> None:
        """Append a whole batch of failures with a single write"""
        failures = list(failures)
        if not failures:
            return
        self.state.failed_properties.extend(failures)
        self.save()

    def should_skip_row(self, row: int) -> bool:
        return row <= self.state.last_processed_row

    def failures_in_phase(self, phase: FailurePhase) -> int:
        value = FailurePhase(phase).value
        return sum(1 for failure in self.state.failed_properties if failure.phase == value)

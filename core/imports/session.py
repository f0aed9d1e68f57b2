import uuid
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Dict, Optional

from core.imports.exceptions import InvalidStepTransitionError, MappingIncompleteError
from core.imports.mapping_editor import MappingEditor
from core.imports.models import ColumnMapping, ImportOutcome, ImportProgressItem, ParsedFileData
from utils.logger import logger


class ImportStep(str, Enum):
    UPLOAD = "upload"
    DETECTION = "detection"
    MAPPING = "mapping"
    SMART_MAPPING = "smart_mapping"
    PROCESSING = "processing"
    SUMMARY = "summary"


STEP_ORDER: List[ImportStep] = list(ImportStep)


class ImportSession:
    """One user's walk through upload -> ... -> summary.

    Forward moves go one step at a time; backward moves may jump to any
    earlier step except once the summary is reached.
    """

    def __init__(self, file_data: Optional[ParsedFileData] = None, created_by: str = "anonymous"):
        self.id = str(uuid.uuid4())
        self.created_by = created_by
        self.created_at = datetime.utcnow()
        self.step = ImportStep.UPLOAD
        self.file_data = file_data
        self.editor: Optional[MappingEditor] = None
        self.used_fallback = False
        self.outcome: Optional[ImportOutcome] = None
        self.error: Optional[str] = None
        self.record_id: Optional[str] = None
        self.processed_rows = 0
        self.total_rows = file_data.total_rows if file_data else 0
        self.running = False

    @property
    def mappings(self) -> List[ColumnMapping]:
        return self.editor.mappings if self.editor else []

    def set_file(self, file_data: ParsedFileData) -> None:
        if self.step != ImportStep.UPLOAD:
            raise InvalidStepTransitionError("A file can only be attached during the upload step")
        self.file_data = file_data
        self.total_rows = file_data.total_rows
        self.editor = None

    def set_mappings(self, mappings: List[ColumnMapping], used_fallback: bool = False) -> None:
        if self.step not in (ImportStep.DETECTION, ImportStep.MAPPING):
            raise InvalidStepTransitionError(f"Mappings cannot be replaced during '{self.step.value}'")
        self.editor = MappingEditor(mappings)
        self.used_fallback = used_fallback

    def can_process(self) -> bool:
        return self.file_data is not None and self.editor is not None and self.editor.can_advance()

    def move_to(self, target: ImportStep) -> ImportStep:
        """Apply a forward or backward navigation"""
        current_index = STEP_ORDER.index(self.step)
        target_index = STEP_ORDER.index(target)

        if target_index == current_index:
            return self.step

        if target_index < current_index:
            if self.step == ImportStep.SUMMARY:
                raise InvalidStepTransitionError("A finished import cannot be reopened")
            if self.running:
                raise InvalidStepTransitionError("Cannot leave the processing step while an import is running")
            self.step = target
            self.error = None
            return self.step

        if target_index != current_index + 1:
            raise InvalidStepTransitionError(
                f"Cannot skip from '{self.step.value}' to '{target.value}'"
            )
        if target == ImportStep.DETECTION and self.file_data is None:
            raise InvalidStepTransitionError("Upload a file before detecting columns")
        if target == ImportStep.MAPPING and self.editor is None:
            raise InvalidStepTransitionError("Column detection has not run yet")
        if target == ImportStep.PROCESSING and not self.can_process():
            raise MappingIncompleteError("At least one column must be mapped to a field before importing")
        if target == ImportStep.SUMMARY:
            raise InvalidStepTransitionError("The summary is reached by completing the import")

        self.step = target
        return self.step

    def start_processing(self) -> None:
        """Enter (or re-enter, for a retry) the processing step"""
        if self.running:
            raise InvalidStepTransitionError("An import is already running")
        if self.step != ImportStep.PROCESSING:
            self.move_to(ImportStep.PROCESSING)
        elif not self.can_process():
            raise MappingIncompleteError("At least one column must be mapped to a field before importing")
        self.processed_rows = 0
        self.outcome = None
        self.error = None
        self.running = True

    def update_progress(self, processed: int, total: int) -> None:
        self.processed_rows = processed
        self.total_rows = total

    def complete(self, outcome: ImportOutcome) -> None:
        """Pipeline finished (possibly with row errors)"""
        if self.step != ImportStep.PROCESSING:
            raise InvalidStepTransitionError("Only a processing import can complete")
        self.running = False
        self.outcome = outcome
        self.error = None
        self.step = ImportStep.SUMMARY

    def fail(self, message: str, outcome: Optional[ImportOutcome] = None) -> None:
        """Pipeline raised; the session stays at processing so it can be retried"""
        self.running = False
        self.error = message
        self.outcome = outcome

    def progress(self) -> ImportProgressItem:
        fraction = self.processed_rows / self.total_rows if self.total_rows else 0.0
        return ImportProgressItem(
            processed=self.processed_rows,
            total=self.total_rows,
            fraction=round(fraction, 4)
        )


class ImportSessionManager:
    """In-memory registry of live import sessions

    Sessions older than the TTL are dropped whenever a new one is created,
    unless an import is still running on them.
    """

    def __init__(self, ttl_seconds: Optional[int] = None):
        self._sessions: Dict[str, ImportSession] = {}
        self.ttl_seconds = ttl_seconds

    def create(self, file_data: ParsedFileData, created_by: str = "anonymous") -> ImportSession:
        self.evict_expired()
        session = ImportSession(file_data=file_data, created_by=created_by)
        self._sessions[session.id] = session
        return session

    def get(self, session_id: str) -> Optional[ImportSession]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def evict_expired(self, now: Optional[datetime] = None) -> int:
        """Drop idle sessions older than the TTL; returns how many went"""
        if not self.ttl_seconds:
            return 0

        cutoff = (now or datetime.utcnow()) - timedelta(seconds=self.ttl_seconds)
        expired = [
            session_id for session_id, session in self._sessions.items()
            if session.created_at < cutoff and not session.running
        ]
        for session_id in expired:
            del self._sessions[session_id]
        if expired:
            logger.info(f"Evicted {len(expired)} expired import sessions")
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)

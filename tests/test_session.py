from datetime import datetime, timedelta

import pytest

from core.imports.exceptions import InvalidStepTransitionError, MappingIncompleteError
from core.imports.file_service import FileProcessingService
from core.imports.models import ColumnMapping, ImportOutcome
from core.imports.session import ImportSession, ImportSessionManager, ImportStep


def _session(sample_csv):
    file_data = FileProcessingService.parse_file(sample_csv, "contacts.csv")
    return ImportSessionManager().create(file_data)


def _mapped_session(sample_csv):
    session = _session(sample_csv)
    session.move_to(ImportStep.DETECTION)
    session.set_mappings([
        ColumnMapping(column_name="First Name", column_index=0, suggested_field="firstName", confidence=96),
        ColumnMapping(column_name="Company", column_index=4, suggested_field="new_custom_field", confidence=30),
    ])
    session.move_to(ImportStep.MAPPING)
    return session


def test_new_session_starts_at_upload(sample_csv):
    session = _session(sample_csv)

    assert session.step == ImportStep.UPLOAD
    assert session.total_rows == 2
    assert session.mappings == []


def test_forward_moves_go_one_step_at_a_time(sample_csv):
    session = _session(sample_csv)

    with pytest.raises(InvalidStepTransitionError):
        session.move_to(ImportStep.MAPPING)

    session.move_to(ImportStep.DETECTION)
    with pytest.raises(InvalidStepTransitionError):
        # Detection has not produced mappings yet
        session.move_to(ImportStep.MAPPING)


def test_detection_requires_a_file():
    session = ImportSession()

    with pytest.raises(InvalidStepTransitionError):
        session.move_to(ImportStep.DETECTION)


def test_walk_to_summary(sample_csv):
    session = _mapped_session(sample_csv)
    session.move_to(ImportStep.SMART_MAPPING)

    session.start_processing()
    assert session.step == ImportStep.PROCESSING
    assert session.running

    session.update_progress(1, 2)
    assert session.progress().fraction == 0.5

    outcome = ImportOutcome(imported=2)
    session.complete(outcome)
    assert session.step == ImportStep.SUMMARY
    assert not session.running
    assert session.outcome == outcome


def test_processing_requires_a_resolved_mapping(sample_csv):
    session = _mapped_session(sample_csv)
    session.editor.update_mapping(0, "")
    session.move_to(ImportStep.SMART_MAPPING)

    assert not session.can_process()
    with pytest.raises(MappingIncompleteError):
        session.move_to(ImportStep.PROCESSING)


def test_backward_moves_can_jump(sample_csv):
    session = _mapped_session(sample_csv)
    session.move_to(ImportStep.SMART_MAPPING)

    session.move_to(ImportStep.UPLOAD)

    assert session.step == ImportStep.UPLOAD


def test_cannot_leave_running_import_or_reopen_summary(sample_csv):
    session = _mapped_session(sample_csv)
    session.move_to(ImportStep.SMART_MAPPING)
    session.start_processing()

    with pytest.raises(InvalidStepTransitionError):
        session.move_to(ImportStep.MAPPING)

    session.complete(ImportOutcome())
    with pytest.raises(InvalidStepTransitionError):
        session.move_to(ImportStep.UPLOAD)


def test_summary_is_only_reached_by_completing(sample_csv):
    session = _mapped_session(sample_csv)
    session.move_to(ImportStep.SMART_MAPPING)
    session.move_to(ImportStep.PROCESSING)

    with pytest.raises(InvalidStepTransitionError):
        session.move_to(ImportStep.SUMMARY)


def test_failed_import_can_be_retried(sample_csv):
    session = _mapped_session(sample_csv)
    session.move_to(ImportStep.SMART_MAPPING)
    session.start_processing()

    session.fail("contact store unavailable", outcome=ImportOutcome(imported=1))
    assert session.step == ImportStep.PROCESSING
    assert session.error == "contact store unavailable"
    assert not session.running

    session.start_processing()
    assert session.running
    assert session.error is None
    assert session.outcome is None


def test_mappings_cannot_change_during_processing(sample_csv):
    session = _mapped_session(sample_csv)
    session.move_to(ImportStep.SMART_MAPPING)
    session.start_processing()

    with pytest.raises(InvalidStepTransitionError):
        session.set_mappings([])


def test_manager_registry(sample_csv):
    manager = ImportSessionManager()
    file_data = FileProcessingService.parse_file(sample_csv, "contacts.csv")
    session = manager.create(file_data, created_by="u-sarah")

    assert manager.get(session.id) is session
    assert len(manager) == 1
    assert manager.remove(session.id)
    assert manager.get(session.id) is None
    assert not manager.remove(session.id)


def test_second_run_is_refused_while_one_is_running(sample_csv):
    session = _mapped_session(sample_csv)
    session.move_to(ImportStep.SMART_MAPPING)
    session.start_processing()
    session.update_progress(1, 2)

    with pytest.raises(InvalidStepTransitionError, match="already running"):
        session.start_processing()

    # The running import keeps its progress
    assert session.running
    assert session.processed_rows == 1


def test_manager_evicts_expired_sessions_on_create(sample_csv):
    manager = ImportSessionManager(ttl_seconds=3600)
    file_data = FileProcessingService.parse_file(sample_csv, "contacts.csv")
    old = manager.create(file_data)
    busy = manager.create(file_data)
    old.created_at = datetime.utcnow() - timedelta(hours=2)
    busy.created_at = datetime.utcnow() - timedelta(hours=2)
    busy.running = True

    fresh = manager.create(file_data)

    assert manager.get(old.id) is None
    assert manager.get(busy.id) is busy
    assert manager.get(fresh.id) is fresh
    assert len(manager) == 2


def test_manager_without_ttl_keeps_everything(sample_csv):
    manager = ImportSessionManager()
    file_data = FileProcessingService.parse_file(sample_csv, "contacts.csv")
    session = manager.create(file_data)
    session.created_at = datetime(2000, 1, 1)

    assert manager.evict_expired() == 0
    assert manager.get(session.id) is session

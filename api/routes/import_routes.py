from fastapi import APIRouter, UploadFile, File, Header, HTTPException, Query
from fastapi.responses import Response
from typing import Optional
from config import settings
from core.fields.exceptions import DuplicateFieldNameError
from core.fields.field_service import FieldService
from core.imports.exceptions import (
    FileParseError,
    FileProcessingError,
    ImportPipelineError,
    InvalidStepTransitionError,
)
from core.imports.field_mapping_service import analyze_with_fallback, build_fallback_mappings
from core.imports.file_service import FileProcessingService
from core.imports.import_service import ImportService
from core.imports.models import (
    CreateCustomFieldRequest,
    FileValidationRequest,
    FileValidationResult,
    ImportHistoryItem,
    ImportHistoryResponse,
    ImportResultResponse,
    MappingListResponse,
    NavigateRequest,
    ProcessingOptions,
    SessionStateResponse,
    UpdateMappingRequest,
    UploadResponse,
)
from core.imports.session import ImportSession, ImportStep
from api.dependencies.import_sessions import get_import_session, get_session_manager
from db.repository_factory import (
    get_contact_repository,
    get_field_repository,
    get_import_session_repository,
    get_user_repository,
)
from utils.logger import logger


router = APIRouter(prefix="/imports")

EDITABLE_STEPS = (ImportStep.MAPPING, ImportStep.SMART_MAPPING)


def _mapping_response(session: ImportSession) -> MappingListResponse:
    return MappingListResponse(
        session_id=session.id,
        step=session.step.value,
        mappings=session.mappings,
        can_process=session.can_process(),
        used_fallback=session.used_fallback
    )


def _state_response(session: ImportSession) -> SessionStateResponse:
    return SessionStateResponse(
        session_id=session.id,
        step=session.step.value,
        file_name=session.file_data.file_name if session.file_data else "",
        total_rows=session.file_data.total_rows if session.file_data else 0,
        progress=session.progress(),
        outcome=session.outcome,
        error=session.error
    )


def _require_editable(session: ImportSession) -> None:
    if session.step not in EDITABLE_STEPS or session.editor is None:
        raise HTTPException(
            status_code=409,
            detail=f"Mappings can only be edited during mapping review (current step: {session.step.value})"
        )


@router.post("/validate", response_model=FileValidationResult)
async def validate_file(request: FileValidationRequest):
    """Check file name, size and type before uploading"""
    return FileProcessingService.validate_file(
        request.file_name,
        request.file_size,
        max_size=settings.max_file_size_mb * 1024 * 1024
    )


@router.get("/sample")
async def download_sample_file():
    """Download an example import file"""
    return Response(
        content=FileProcessingService.generate_sample_file(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="sample_contacts.csv"'}
    )


@router.get("/history", response_model=ImportHistoryResponse)
async def list_import_history(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page")
):
    """List finished and failed import runs"""
    try:
        session_repo = await get_import_session_repository()
        records = await session_repo.get_sessions(skip=(page - 1) * page_size, limit=page_size)

        items = [
            ImportHistoryItem(
                id=record.id,
                file_name=record.file_name,
                file_size=record.file_size,
                total_rows=record.total_rows,
                mapped_fields=record.mapped_fields,
                status=record.status,
                results=record.results,
                created_by=record.created_by,
                created_on=record.created_on,
                completed_on=record.completed_on
            )
            for record in records
        ]
        return ImportHistoryResponse(sessions=items, total=len(items))

    except Exception as e:
        logger.error(f"Error listing import history: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    file: UploadFile = File(...),
    x_user_id: Optional[str] = Header(None)
):
    """
    Upload a CSV or Excel file and start an import session

    The first row must hold the column headers; only the first
    worksheet of a workbook is read.
    """
    max_size = settings.max_file_size_mb * 1024 * 1024

    # Check name and extension before reading the body
    precheck = FileProcessingService.validate_file(file.filename, 0, max_size=max_size)
    if not precheck.valid:
        raise HTTPException(status_code=400, detail=precheck.error)

    try:
        content = await file.read()

        validation = FileProcessingService.validate_file(file.filename, len(content), max_size=max_size)
        if not validation.valid:
            raise HTTPException(status_code=400, detail=validation.error)

        options = ProcessingOptions(
            max_rows=settings.import_max_rows,
            skip_empty_rows=settings.import_skip_empty_rows,
            trim_whitespace=settings.import_trim_whitespace
        )
        file_data = FileProcessingService.parse_file(content, file.filename, options)

        session = get_session_manager().create(file_data, created_by=x_user_id or "anonymous")
        session.move_to(ImportStep.DETECTION)
        logger.info(f"Started import session {session.id} for '{file.filename}'")

        return UploadResponse(
            session_id=session.id,
            step=session.step.value,
            file_name=file_data.file_name,
            file_size=file_data.file_size,
            file_type=file_data.file_type,
            headers=file_data.headers,
            total_rows=file_data.total_rows,
            preview=FileProcessingService.get_sample_data(file_data.rows)
        )

    except HTTPException:
        raise
    except FileParseError as e:
        logger.error(f"Error reading '{file.filename}': {str(e)}")
        raise HTTPException(status_code=422, detail=str(e))
    except FileProcessingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error uploading file: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error processing file: {str(e)}")


@router.get("/{session_id}", response_model=SessionStateResponse)
async def get_import_state(session_id: str):
    """Current step, progress and outcome of an import session"""
    return _state_response(get_import_session(session_id))


@router.post("/{session_id}/detect", response_model=MappingListResponse)
async def detect_columns(session_id: str):
    """Infer a target field for every column"""
    session = get_import_session(session_id)
    if session.step != ImportStep.DETECTION:
        raise HTTPException(
            status_code=409,
            detail=f"Column detection runs in the detection step (current step: {session.step.value})"
        )

    file_data = session.file_data
    sample_rows = file_data.rows[:settings.inference_sample_rows]

    try:
        field_repo = await get_field_repository()
        user_repo = await get_user_repository()
    except Exception as e:
        logger.warning(f"Repositories unavailable for column detection, using keyword fallback: {str(e)}")
        mappings, used_fallback = build_fallback_mappings(file_data.headers, sample_rows), True
    else:
        mappings, _, used_fallback = await analyze_with_fallback(
            file_data.headers, sample_rows, field_repo, user_repo
        )

    session.set_mappings(mappings, used_fallback=used_fallback)
    session.move_to(ImportStep.MAPPING)
    return _mapping_response(session)


@router.get("/{session_id}/mappings", response_model=MappingListResponse)
async def get_mappings(session_id: str):
    """Current column mappings of a session"""
    return _mapping_response(get_import_session(session_id))


@router.put("/{session_id}/mappings/{index}", response_model=MappingListResponse)
async def update_mapping(session_id: str, index: int, request: UpdateMappingRequest):
    """Point a column at another field"""
    session = get_import_session(session_id)
    _require_editable(session)

    try:
        session.editor.update_mapping(index, request.suggested_field)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _mapping_response(session)


@router.post("/{session_id}/mappings/{index}/reset", response_model=MappingListResponse)
async def reset_mapping(session_id: str, index: int):
    """Restore the inferred suggestion for a column"""
    session = get_import_session(session_id)
    _require_editable(session)

    try:
        session.editor.reset_mapping(index)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _mapping_response(session)


@router.post("/{session_id}/mappings/{index}/custom-field", response_model=MappingListResponse)
async def create_custom_field(session_id: str, index: int, request: CreateCustomFieldRequest):
    """Create a custom field and map the column onto it"""
    session = get_import_session(session_id)
    _require_editable(session)

    try:
        field_service = FieldService(await get_field_repository())
        await session.editor.create_custom_field(
            index,
            request.label,
            field_service,
            field_type=request.type
        )
        return _mapping_response(session)

    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DuplicateFieldNameError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating custom field: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/{session_id}/navigate", response_model=SessionStateResponse)
async def navigate(session_id: str, request: NavigateRequest):
    """Move the session forward one step or back to an earlier step"""
    session = get_import_session(session_id)

    try:
        target = ImportStep(request.step)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown import step '{request.step}'")

    try:
        session.move_to(target)
    except InvalidStepTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _state_response(session)


@router.post("/{session_id}/process", response_model=ImportResultResponse)
async def process_import(session_id: str):
    """
    Import every row using the current mappings

    Row-level validation problems are reported in error_details. A storage
    failure stops the run; the session stays in processing and the request
    can be retried.
    """
    session = get_import_session(session_id)

    try:
        session.start_processing()
    except InvalidStepTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    file_data = session.file_data
    record = None
    try:
        contact_repo = await get_contact_repository()
        user_repo = await get_user_repository()
        session_repo = await get_import_session_repository()

        record = await session_repo.create_session(
            file_name=file_data.file_name,
            file_size=file_data.file_size,
            total_rows=file_data.total_rows,
            mapped_fields=session.editor.to_field_map(),
            created_by=session.created_by
        )
        session.record_id = record.id

        import_service = ImportService(
            contact_repo,
            user_repo=user_repo,
            row_delay=settings.import_row_delay_seconds,
            progress_callback=session.update_progress
        )
        outcome = await import_service.run(file_data.table, session.mappings)

    except ImportPipelineError as e:
        session.fail(str(e), outcome=e.outcome)
        if record is not None:
            await _record_failure(session_repo, record.id, e.outcome.model_dump())
        raise HTTPException(status_code=500, detail={
            "message": str(e),
            "row": e.row_number,
            "imported": e.outcome.imported,
            "merged": e.outcome.merged,
            "errors": e.outcome.errors,
        })
    except Exception as e:
        logger.error(f"Error processing import {session_id}: {str(e)}")
        session.fail(str(e))
        raise HTTPException(status_code=500, detail=f"Import failed: {str(e)}")

    session.complete(outcome)
    try:
        await session_repo.update_session(record.id, "completed", outcome.model_dump())
    except Exception as e:
        logger.error(f"Failed to record import session {record.id}: {str(e)}")

    message_parts = []
    if outcome.imported:
        message_parts.append(f"Successfully imported {outcome.imported} contacts")
    if outcome.merged:
        message_parts.append(f"{outcome.merged} merged into existing contacts")
    if outcome.errors:
        message_parts.append(f"{outcome.errors} invalid rows")

    return ImportResultResponse(
        success=outcome.errors == 0,
        session_id=session.id,
        step=session.step.value,
        imported=outcome.imported,
        merged=outcome.merged,
        errors=outcome.errors,
        error_details=outcome.error_details,
        message="; ".join(message_parts) if message_parts else "No contacts imported"
    )


async def _record_failure(session_repo, record_id: str, results: dict) -> None:
    try:
        await session_repo.update_session(record_id, "failed", results)
    except Exception as e:
        logger.error(f"Failed to record import failure {record_id}: {str(e)}")

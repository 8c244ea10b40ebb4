"""
app/api/routers/smart_import.py

Smart import HTTP endpoints: validate, review, fix and commit platform exports.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, UploadFile, status

from app.api.dependencies import get_tabular_uploads, read_raw_files
from app.domain.import_errors import (
    FixNotAvailableError,
    ImportBlockedError,
    ImportStateError,
    InvalidCorrectionError,
    IssueNotFoundError,
)
from app.domain.smart_import import Platform
from app.schemas.smart_import import (
    CorrectionRequest,
    FileValidationResponse,
    ImportHistoryResponse,
    ImportOutcomeResponse,
    ImportSessionResponse,
    ValidationBatchResponse,
)
from app.services.smart_import_service import (
    ImportSession,
    ImportSessionRegistry,
    SmartImportService,
    get_import_session_registry,
    get_smart_import_service,
)

router = APIRouter(prefix="/imports", tags=["smart-import"])


def _close_all(files: list[UploadFile]) -> None:
    for file in files:
        file.file.close()


def _session_response(session: ImportSession) -> ImportSessionResponse:
    return ImportSessionResponse(
        **session.to_dict(),
        files=[FileValidationResponse.from_result(result) for result in session.results],
    )


def _get_session(session_id: str, registry: ImportSessionRegistry) -> ImportSession:
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Import session '{session_id}' not found.",
        )
    return session


@router.post("/validate", response_model=ValidationBatchResponse)
def validate_files(
    platform: Platform = Query(..., description="Platform the exports come from"),
    client_id: str = Query(..., min_length=1),
    files: list[UploadFile] = Depends(get_tabular_uploads),
    service: SmartImportService = Depends(get_smart_import_service),
) -> ValidationBatchResponse:
    """
    Dry-run validation of uploaded exports. Nothing is persisted.
    """

    try:
        results = service.validate_files(read_raw_files(files, platform), client_id)
    finally:
        _close_all(files)

    return ValidationBatchResponse(
        files=[FileValidationResponse.from_result(result) for result in results],
        can_proceed=all(not result.has_blocking_errors for result in results),
    )


@router.post("/sessions", response_model=ImportSessionResponse, status_code=status.HTTP_201_CREATED)
def create_session(
    platform: Platform = Query(...),
    client_id: str = Query(..., min_length=1),
    files: list[UploadFile] = Depends(get_tabular_uploads),
    service: SmartImportService = Depends(get_smart_import_service),
    registry: ImportSessionRegistry = Depends(get_import_session_registry),
) -> ImportSessionResponse:
    """
    Validate uploads and keep the results for review, fixes and commit.
    """

    try:
        raw_files = read_raw_files(files, platform)
    finally:
        _close_all(files)

    session = registry.add(ImportSession(service=service, client_id=client_id, platform=platform))
    session.start(raw_files)
    return _session_response(session)


@router.get("/sessions/{session_id}", response_model=ImportSessionResponse)
def get_session(
    session_id: str,
    registry: ImportSessionRegistry = Depends(get_import_session_registry),
) -> ImportSessionResponse:
    return _session_response(_get_session(session_id, registry))


@router.post("/sessions/{session_id}/fixes/{issue_id}", response_model=ImportSessionResponse)
def apply_fix(
    session_id: str,
    issue_id: str,
    file_name: str | None = Query(default=None, description="Disambiguates issues shared across files"),
    registry: ImportSessionRegistry = Depends(get_import_session_registry),
) -> ImportSessionResponse:
    """
    Apply the deterministic fix attached to one issue.
    """

    session = _get_session(session_id, registry)
    try:
        session.apply_fix(issue_id, file_name=file_name)
    except IssueNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except FixNotAvailableError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except ImportStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return _session_response(session)


@router.post("/sessions/{session_id}/corrections", response_model=ImportSessionResponse)
def apply_correction(
    session_id: str,
    correction: CorrectionRequest,
    registry: ImportSessionRegistry = Depends(get_import_session_registry),
) -> ImportSessionResponse:
    """
    Apply a manual correction: edit a cell, remap a column, override the content kind or remove a file.
    """

    session = _get_session(session_id, registry)
    try:
        session.correct(correction.file_name, correction.action, **correction.params())
    except InvalidCorrectionError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except ImportStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return _session_response(session)


@router.post("/sessions/{session_id}/proceed", response_model=ImportOutcomeResponse)
def proceed_import(
    session_id: str,
    registry: ImportSessionRegistry = Depends(get_import_session_registry),
) -> ImportOutcomeResponse:
    """
    Reconcile and commit the session. Rejected while error-severity issues remain.
    """

    session = _get_session(session_id, registry)
    try:
        outcome = session.proceed()
    except ImportBlockedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.to_dict()) from exc
    except ImportStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return ImportOutcomeResponse.from_outcome(outcome)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
def cancel_session(
    session_id: str,
    registry: ImportSessionRegistry = Depends(get_import_session_registry),
) -> Response:
    session = _get_session(session_id, registry)
    try:
        session.cancel()
    except ImportStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    registry.remove(session_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/history", response_model=list[ImportHistoryResponse])
def list_history(
    client_id: str | None = Query(default=None),
    platform: Platform | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    service: SmartImportService = Depends(get_smart_import_service),
) -> list[ImportHistoryResponse]:
    if service.history is None:
        return []
    entries = service.history.list_history(
        client_id=client_id,
        platform=platform.value if platform else None,
        limit=limit,
    )
    return [ImportHistoryResponse(**entry) for entry in entries]

"""
app/services/smart_import_service.py

Drives the smart import pipeline: per-file decode -> classify -> normalize ->
validate on a bounded worker pool, then reconcile, commit and advise.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError, as_completed
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Sequence

from app.config import SmartImportSettings, get_smart_import_settings
from app.domain.import_errors import (
    DecodeError,
    ImportBlockedError,
    ImportStateError,
    InvalidCorrectionError,
    IssueNotFoundError,
)
from app.domain.import_results import FileValidationResult, ImportOutcome
from app.domain.smart_import import (
    ContentKind,
    GroupCommitResult,
    ImportStage,
    IssueCategory,
    ManualAction,
    NormalizedRecord,
    Platform,
    RawFile,
    Severity,
    ValidationIssue,
    make_issue_id,
)
from app.mappers.field_normalizer import FieldNormalizer
from app.mappers.schema_classifier import SchemaClassifier
from app.parsing.tabular_decoder import TabularDecoder
from app.repositories.record_store import (
    DAILY_METRICS_TARGET,
    ENTITIES_TARGET,
    InMemoryRecordStore,
    RecordStore,
    SQLAlchemyRecordStore,
)
from app.services.advisory_service import AdvisoryChecker, LocalAdvisoryChecker, build_advisory_checker
from app.services.import_history_service import ImportHistoryService
from app.services.reconciler import Reconciler
from app.validators.import_validator import CLASSIFICATION_UNCERTAIN, ImportValidator
from llm_synthesis.schema import AdvisoryReport, AdvisoryRequest

logger = logging.getLogger(__name__)

TERMINAL_STAGES = frozenset({ImportStage.DONE, ImportStage.CANCELLED})

ALLOWED_TRANSITIONS: dict[ImportStage, frozenset[ImportStage]] = {
    ImportStage.PENDING: frozenset({ImportStage.DECODING, ImportStage.VALIDATING}),
    ImportStage.DECODING: frozenset({ImportStage.CLASSIFYING, ImportStage.AWAITING_PROCEED}),
    ImportStage.CLASSIFYING: frozenset({ImportStage.NORMALIZING, ImportStage.AWAITING_PROCEED}),
    ImportStage.NORMALIZING: frozenset({ImportStage.VALIDATING}),
    ImportStage.VALIDATING: frozenset({ImportStage.AWAITING_PROCEED}),
    ImportStage.AWAITING_PROCEED: frozenset({ImportStage.VALIDATING, ImportStage.RECONCILING}),
    ImportStage.RECONCILING: frozenset({ImportStage.COMMITTING, ImportStage.AWAITING_PROCEED}),
    ImportStage.COMMITTING: frozenset({ImportStage.DONE}),
    ImportStage.DONE: frozenset(),
    ImportStage.CANCELLED: frozenset(),
}


def check_transition(current: ImportStage, requested: ImportStage) -> None:
    if requested == ImportStage.CANCELLED and current not in TERMINAL_STAGES:
        return
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise ImportStateError(current=current, requested=requested)


class SmartImportService:
    """
    Stateless pipeline facade; every call works on the results it is given.
    """

    def __init__(
        self,
        *,
        record_store: RecordStore,
        settings: SmartImportSettings | None = None,
        decoder: TabularDecoder | None = None,
        classifier: SchemaClassifier | None = None,
        validator: ImportValidator | None = None,
        reconciler: Reconciler | None = None,
        advisory_checker: AdvisoryChecker | None = None,
        history: ImportHistoryService | None = None,
    ) -> None:
        self._settings = settings or get_smart_import_settings()
        self._record_store = record_store
        self._decoder = decoder or TabularDecoder()
        self._classifier = classifier or SchemaClassifier(
            confidence_floor=self._settings.confidence_floor,
            forbidden_penalty=self._settings.forbidden_penalty,
        )
        self._validator = validator or ImportValidator(
            normalizer=FieldNormalizer(fuzzy_threshold=self._settings.fuzzy_threshold),
            date_gap_days=self._settings.date_gap_days,
            high_value_threshold=self._settings.high_value_threshold,
        )
        self._normalizer = self._validator.normalizer
        self._reconciler = reconciler or Reconciler()
        self._fallback_advisory = LocalAdvisoryChecker()
        self._advisory = advisory_checker or self._fallback_advisory
        self._history = history

    @property
    def validator(self) -> ImportValidator:
        return self._validator

    @property
    def history(self) -> ImportHistoryService | None:
        return self._history

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_files(self, files: Sequence[RawFile], client_id: str) -> list[FileValidationResult]:
        """
        Decode, classify, normalize and validate every file. No persistence side effects.
        """

        if not files:
            return []

        max_workers = min(len(files), self._settings.max_workers)
        results: dict[int, FileValidationResult] = {}
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="smart-import-file") as pool:
            futures = {
                pool.submit(self.process_file, raw_file, client_id, upload_index): upload_index
                for upload_index, raw_file in enumerate(files)
            }
            for future in as_completed(futures):
                upload_index = futures[future]
                results[upload_index] = future.result()

        return [results[index] for index in range(len(files))]

    def process_file(self, raw_file: RawFile, client_id: str, upload_index: int) -> FileValidationResult:
        result = FileValidationResult(
            source_file_name=raw_file.file_name,
            platform=raw_file.platform,
            client_id=client_id,
            upload_index=upload_index,
        )
        try:
            self._run_stages(result, raw_file)
        except Exception as exc:
            logger.exception("Unexpected failure processing file=%r", raw_file.file_name)
            result.file_issues.append(
                self._file_issue(
                    result,
                    "processing_failed",
                    f"File could not be processed: {exc}",
                    manual_action=ManualAction.REMOVE_FILE,
                )
            )
            result.stage = ImportStage.AWAITING_PROCEED
        return result

    def _run_stages(self, result: FileValidationResult, raw_file: RawFile) -> None:
        self._advance(result, ImportStage.DECODING)
        try:
            table = self._decoder.decode(
                raw_file.content,
                raw_file.format_hint,
                file_name=raw_file.file_name,
                sheet_name=raw_file.sheet_name,
            )
        except DecodeError as exc:
            logger.warning("Decode failed file=%r: %s", raw_file.file_name, exc.message)
            result.file_issues.append(
                self._file_issue(
                    result,
                    "decode_failed",
                    exc.message,
                    manual_action=ManualAction.REMOVE_FILE,
                    category=IssueCategory.DECODE,
                )
            )
            self._advance(result, ImportStage.AWAITING_PROCEED)
            return

        result.headers = list(table.headers)
        result.preamble = table.preamble
        result.raw_data = list(table.rows)
        result.file_issues.extend(table.issues)

        self._advance(result, ImportStage.CLASSIFYING)
        kind, confidence = self._classifier.classify(table.headers, raw_file.platform, table.preamble)
        result.detected_type = kind
        result.confidence = confidence
        logger.info(
            "Classified file=%r platform=%s kind=%s confidence=%.2f",
            raw_file.file_name,
            raw_file.platform.value,
            kind.value,
            confidence,
        )
        if kind == ContentKind.UNKNOWN:
            result.file_issues.append(
                self._file_issue(
                    result,
                    CLASSIFICATION_UNCERTAIN,
                    "Could not determine what this file contains; choose its content kind.",
                    manual_action=ManualAction.OVERRIDE_CONTENT_KIND,
                    category=IssueCategory.CLASSIFICATION,
                )
            )
            self._advance(result, ImportStage.AWAITING_PROCEED)
            return

        self._advance(result, ImportStage.NORMALIZING)
        self._normalizer.populate(result)
        self._advance(result, ImportStage.VALIDATING)
        self._validator.validate(result)

    @staticmethod
    def _advance(result: FileValidationResult, stage: ImportStage) -> None:
        check_transition(result.stage, stage)
        result.stage = stage

    # ------------------------------------------------------------------
    # Fixes
    # ------------------------------------------------------------------

    def apply_fix(self, result: FileValidationResult, issue_id: str) -> FileValidationResult:
        check_transition(result.stage, ImportStage.VALIDATING)
        return self._validator.apply_fix(result, issue_id)

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    def proceed_import(self, results: Sequence[FileValidationResult], client_id: str) -> ImportOutcome:
        """
        Reconcile and commit validated results. Raises ImportBlockedError while errors remain.
        """

        blocking = [issue for result in results for issue in result.blocking_issues]
        if blocking:
            raise ImportBlockedError(
                message=f"{len(blocking)} unresolved error(s) block this import.",
                blocking=blocking,
            )

        for result in results:
            result.stage = ImportStage.RECONCILING
        reconciliation = self._reconciler.reconcile(results)

        for result in results:
            result.stage = ImportStage.COMMITTING
        groups = self.commit(reconciliation.records)
        imported = sum(group.succeeded for group in groups)

        outcome = ImportOutcome(
            files_processed=len(results) - len(reconciliation.skipped_files),
            records_imported=imported,
            date_range=reconciliation.date_range,
            content_kinds=reconciliation.content_kinds,
            per_file_results=list(results),
            commit_groups=groups,
            conflicts=list(reconciliation.conflicts),
        )
        for result in results:
            result.stage = ImportStage.DONE

        platform = _platform_label(results)
        outcome.advisory = self.run_advisory(
            AdvisoryRequest(
                client_id=client_id,
                platform=platform,
                imported_count=imported,
                date_range=(
                    {"start": outcome.date_range.start, "end": outcome.date_range.end}
                    if outcome.date_range
                    else None
                ),
                import_types=sorted(kind.value for kind in outcome.content_kinds),
                file_name=", ".join(result.source_file_name for result in results),
            )
        )

        if self._history is not None:
            try:
                self._history.record(outcome, client_id=client_id, platform=platform)
            except Exception:
                logger.exception("Failed to record import history client=%s", client_id)

        logger.info(
            "Import finished client=%s status=%s imported=%d failed=%d groups=%d",
            client_id,
            outcome.status,
            outcome.records_imported,
            outcome.records_failed,
            len(groups),
        )
        return outcome

    def run(self, files: Sequence[RawFile], client_id: str) -> ImportOutcome:
        """
        Validate then proceed in one call; raises ImportBlockedError when fixes are needed.
        """

        return self.proceed_import(self.validate_files(files, client_id), client_id)

    def commit(self, records: Sequence[NormalizedRecord]) -> list[GroupCommitResult]:
        """
        Upsert records grouped by ContentKind; groups run concurrently, records sequentially.
        """

        groups: dict[ContentKind, list[NormalizedRecord]] = {}
        for record in records:
            groups.setdefault(record.content_kind, []).append(record)
        if not groups:
            return []

        outcomes: dict[ContentKind, GroupCommitResult] = {}
        max_workers = min(len(groups), self._settings.max_workers)
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="smart-import-commit") as pool:
            futures = {pool.submit(self._commit_group, kind, items): kind for kind, items in groups.items()}
            for future in as_completed(futures):
                kind = futures[future]
                try:
                    outcomes[kind] = future.result()
                except Exception as exc:
                    logger.exception("Commit group kind=%s crashed", kind.value)
                    outcomes[kind] = GroupCommitResult(
                        content_kind=kind,
                        target=_target_for(groups[kind][0]),
                        succeeded=0,
                        failed=len(groups[kind]),
                        error=str(exc),
                    )
        return [outcomes[kind] for kind in groups]

    def _commit_group(self, kind: ContentKind, records: Sequence[NormalizedRecord]) -> GroupCommitResult:
        succeeded = 0
        failed = 0
        first_error: str | None = None
        for record in records:
            try:
                self._upsert(record)
                succeeded += 1
            except Exception as exc:
                failed += 1
                first_error = first_error or str(exc)
                logger.warning("Upsert failed kind=%s key=%s: %s", kind.value, record.key, exc)

        if failed:
            logger.warning("Commit group kind=%s succeeded=%d failed=%d", kind.value, succeeded, failed)
        return GroupCommitResult(
            content_kind=kind,
            target=_target_for(records[0]),
            succeeded=succeeded,
            failed=failed,
            error=first_error,
        )

    def _upsert(self, record: NormalizedRecord) -> None:
        extra: dict[str, Any] = dict(record.extra)
        extra["source_file_name"] = record.source_file_name
        if record.imputed_fields:
            extra["imputed_fields"] = sorted(record.imputed_fields)

        if record.is_entity:
            self._record_store.upsert_entity(
                record.client_id,
                record.platform.value,
                record.external_id or "",
                record.fields,
                content_kind=record.content_kind.value,
                published_on=record.date,
                extra=extra,
            )
            return
        self._record_store.upsert_daily_metric(
            record.client_id,
            record.platform.value,
            record.content_kind.value,
            record.date or "",
            record.fields,
            extra=extra,
        )

    # ------------------------------------------------------------------
    # Advisory
    # ------------------------------------------------------------------

    def run_advisory(self, request: AdvisoryRequest) -> AdvisoryReport:
        """
        Run the advisory check with a timeout; any failure degrades to the local summary.
        """

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="smart-import-advisory")
        future = executor.submit(self._advisory.analyze_import, request)
        try:
            return future.result(timeout=self._settings.advisory_timeout_seconds)
        except FuturesTimeoutError:
            future.cancel()
            logger.warning(
                "Advisory check timed out after %.1fs; using local summary",
                self._settings.advisory_timeout_seconds,
            )
        except Exception as exc:
            logger.warning("Advisory check unavailable (%s); using local summary", exc)
        finally:
            # Never wait on an abandoned advisory call.
            executor.shutdown(wait=False, cancel_futures=True)
        return self._fallback_advisory.analyze_import(request)

    @staticmethod
    def _file_issue(
        result: FileValidationResult,
        code: str,
        message: str,
        *,
        manual_action: ManualAction,
        category: IssueCategory = IssueCategory.VALIDATION,
    ) -> ValidationIssue:
        return ValidationIssue(
            issue_id=make_issue_id(code),
            severity=Severity.ERROR,
            category=category,
            code=code,
            message=message,
            manual_action=manual_action,
            source_file_name=result.source_file_name,
        )


def _target_for(record: NormalizedRecord) -> str:
    return ENTITIES_TARGET if record.is_entity else DAILY_METRICS_TARGET


def _platform_label(results: Sequence[FileValidationResult]) -> str:
    platforms = sorted({result.platform.value for result in results})
    return ",".join(platforms) if platforms else "unknown"


class ImportSession:
    """
    Holds one user's in-progress import between validation and commit.
    """

    def __init__(self, *, service: SmartImportService, client_id: str, platform: Platform) -> None:
        self.id = str(uuid.uuid4())
        self.client_id = client_id
        self.platform = platform
        self.created_at = datetime.now(timezone.utc)
        self.stage = ImportStage.PENDING
        self.results: list[FileValidationResult] = []
        self.outcome: ImportOutcome | None = None
        self._service = service
        self._lock = threading.RLock()

    def _transition(self, stage: ImportStage) -> None:
        check_transition(self.stage, stage)
        logger.info("Import session=%s %s -> %s", self.id, self.stage.value, stage.value)
        self.stage = stage

    @property
    def can_proceed(self) -> bool:
        return bool(self.results) and not any(result.has_blocking_errors for result in self.results)

    def start(self, files: Sequence[RawFile]) -> list[FileValidationResult]:
        with self._lock:
            self._transition(ImportStage.VALIDATING)
            self.results = self._service.validate_files(files, self.client_id)
            self._transition(ImportStage.AWAITING_PROCEED)
            return self.results

    def find_result(self, issue_id: str, file_name: str | None = None) -> FileValidationResult:
        for result in self.results:
            if file_name is not None and result.source_file_name != file_name:
                continue
            if result.find_issue(issue_id) is not None:
                return result
        raise IssueNotFoundError(f"Issue '{issue_id}' not found in this import.")

    def result_for(self, file_name: str) -> FileValidationResult:
        for result in self.results:
            if result.source_file_name == file_name:
                return result
        raise InvalidCorrectionError(f"File '{file_name}' is not part of this import.")

    def apply_fix(self, issue_id: str, *, file_name: str | None = None) -> FileValidationResult:
        with self._lock:
            self._transition(ImportStage.VALIDATING)
            try:
                return self._service.apply_fix(self.find_result(issue_id, file_name), issue_id)
            finally:
                self.stage = ImportStage.AWAITING_PROCEED

    def correct(self, file_name: str, action: ManualAction, **params: Any) -> FileValidationResult | None:
        """
        Apply a manual correction; ``remove_file`` returns ``None``.
        """

        with self._lock:
            self._transition(ImportStage.VALIDATING)
            try:
                result = self.result_for(file_name)
                validator = self._service.validator
                if action == ManualAction.REMOVE_FILE:
                    self.results = [item for item in self.results if item is not result]
                    return None
                if action == ManualAction.EDIT_VALUE:
                    return validator.edit_cell(
                        result,
                        row_index=int(params["row_index"]),
                        column=str(params["column"]),
                        value=str(params.get("value") or ""),
                    )
                if action == ManualAction.REMAP_COLUMN:
                    return validator.remap_column(
                        result,
                        canonical_field=str(params["canonical_field"]),
                        source_column=str(params["source_column"]),
                    )
                if action == ManualAction.OVERRIDE_CONTENT_KIND:
                    return validator.override_content_kind(result, str(params["content_kind"]))
                raise InvalidCorrectionError(f"Unsupported correction '{action}'.")
            except KeyError as exc:
                raise InvalidCorrectionError(f"Missing parameter {exc} for '{action.value}'.") from exc
            finally:
                self.stage = ImportStage.AWAITING_PROCEED

    def proceed(self) -> ImportOutcome:
        with self._lock:
            self._transition(ImportStage.RECONCILING)
            try:
                self.outcome = self._service.proceed_import(self.results, self.client_id)
            except Exception:
                # Leave the session correctable whatever stopped the import.
                for result in self.results:
                    if result.stage not in TERMINAL_STAGES:
                        result.stage = ImportStage.AWAITING_PROCEED
                self.stage = ImportStage.AWAITING_PROCEED
                raise
            self.stage = ImportStage.COMMITTING
            self._transition(ImportStage.DONE)
            return self.outcome

    def cancel(self) -> None:
        with self._lock:
            self._transition(ImportStage.CANCELLED)
            self.results = []

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.id,
            "client_id": self.client_id,
            "platform": self.platform.value,
            "stage": self.stage.value,
            "created_at": self.created_at.isoformat(),
            "can_proceed": self.can_proceed,
        }


class ImportSessionRegistry:
    """
    In-process session store; the oldest sessions are evicted past ``max_sessions``.
    """

    def __init__(self, *, max_sessions: int = 200) -> None:
        self._sessions: OrderedDict[str, ImportSession] = OrderedDict()
        self._lock = threading.Lock()
        self._max_sessions = max(1, max_sessions)

    def add(self, session: ImportSession) -> ImportSession:
        with self._lock:
            self._sessions[session.id] = session
            while len(self._sessions) > self._max_sessions:
                evicted_id, _ = self._sessions.popitem(last=False)
                logger.info("Evicted import session=%s", evicted_id)
        return session

    def get(self, session_id: str) -> ImportSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> ImportSession | None:
        with self._lock:
            return self._sessions.pop(session_id, None)


@lru_cache(maxsize=1)
def get_smart_import_service() -> SmartImportService:
    """
    Build and cache the smart import service with env-driven settings.
    """

    settings = get_smart_import_settings()
    if settings.record_store == "memory":
        record_store: RecordStore = InMemoryRecordStore()
        history = None
    else:
        from db.session import SessionLocal

        record_store = SQLAlchemyRecordStore(SessionLocal)
        history = ImportHistoryService(SessionLocal)

    return SmartImportService(
        record_store=record_store,
        settings=settings,
        advisory_checker=build_advisory_checker(settings),
        history=history,
    )


@lru_cache(maxsize=1)
def get_import_session_registry() -> ImportSessionRegistry:
    return ImportSessionRegistry(max_sessions=get_smart_import_settings().max_sessions)

"""
tests/test_smart_import_service.py

Pytest tests for the smart import pipeline end to end against the in-memory
record store.

Coverage
--------
- Concurrent per-file validation keeps upload order
- Decode and classification failures surface as blocking file issues
- Proceed is rejected while errors remain; fixes unblock it
- Partial commit failure is reported per content kind
- Advisory timeout and failure fall back to the local summary
- Import history is recorded and never fails the import
- Session stage machine and registry eviction
"""

from __future__ import annotations

import threading
import time
from typing import Any

import pytest

from app.config import SmartImportSettings
from app.domain.import_errors import AdvisoryUnavailableError, ImportBlockedError, ImportStateError
from app.domain.smart_import import ContentKind, ImportStage, ManualAction, Platform, RawFile, Severity
from app.repositories.record_store import DAILY_METRICS_TARGET, ENTITIES_TARGET, InMemoryRecordStore
from app.services.reconciler import Reconciler
from app.services.smart_import_service import (
    ImportSession,
    ImportSessionRegistry,
    SmartImportService,
    check_transition,
)
from llm_synthesis.schema import AdvisoryReport, AdvisoryRequest


REACH_CSV = "Data,Alcance\n01/03/2024,1200\n02/03/2024,\n".encode("utf-8")
FOLLOWERS_CSV = "Data;Seguidores\n01/03/2024;500\n".encode("utf-8")
BAD_DATE_CSV = "Data,Alcance\n31/02/2024,10\n01/03/2024,5\n".encode("utf-8")
POSTS_CSV = (
    "Identificação do post,Horário de publicação,Curtidas,Alcance\n"
    "178,03/01/2024 10:00,10,100\n"
    "179,03/02/2024 11:00,4,80\n"
).encode("utf-8")


def _file(name: str, content: bytes, platform: Platform = Platform.INSTAGRAM) -> RawFile:
    return RawFile(file_name=name, content=content, platform=platform, format_hint="csv")


class SlowAdvisory:
    def __init__(self) -> None:
        self.release = threading.Event()

    def analyze_import(self, request: AdvisoryRequest) -> AdvisoryReport:
        self.release.wait(timeout=5)
        return AdvisoryReport(status="success", summary="late", ai_analyzed=True)


class BrokenAdvisory:
    def analyze_import(self, request: AdvisoryRequest) -> AdvisoryReport:
        raise AdvisoryUnavailableError("model offline")


class RecordingHistory:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[dict[str, Any]] = []

    def record(self, outcome: Any, *, client_id: str, platform: str) -> dict[str, Any]:
        if self.fail:
            raise RuntimeError("history table missing")
        entry = {"client_id": client_id, "platform": platform, "status": outcome.status}
        self.calls.append(entry)
        return entry


class EntityFailingStore(InMemoryRecordStore):
    def upsert_entity(self, *args: Any, **kwargs: Any) -> None:
        raise RuntimeError("entity table locked")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings() -> SmartImportSettings:
    return SmartImportSettings(max_workers=2, advisory_timeout_seconds=0.2)


@pytest.fixture()
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture()
def service(store: InMemoryRecordStore, settings: SmartImportSettings) -> SmartImportService:
    return SmartImportService(record_store=store, settings=settings)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidateFiles:
    def test_results_follow_upload_order(self, service: SmartImportService) -> None:
        files = [_file("reach.csv", REACH_CSV), _file("followers.csv", FOLLOWERS_CSV), _file("posts.csv", POSTS_CSV)]

        results = service.validate_files(files, "client-1")

        assert [result.source_file_name for result in results] == ["reach.csv", "followers.csv", "posts.csv"]
        assert [result.detected_type for result in results] == [
            ContentKind.REACH,
            ContentKind.FOLLOWERS,
            ContentKind.POSTS,
        ]
        assert [result.upload_index for result in results] == [0, 1, 2]
        assert all(result.stage == ImportStage.AWAITING_PROCEED for result in results)

    def test_validation_has_no_side_effects(self, service: SmartImportService, store: InMemoryRecordStore) -> None:
        service.validate_files([_file("reach.csv", REACH_CSV)], "client-1")

        assert store.calls == 0

    def test_empty_file_becomes_blocking_decode_issue(self, service: SmartImportService) -> None:
        (result,) = service.validate_files([_file("empty.csv", b"")], "client-1")

        issue = result.find_issue("decode_failed")
        assert issue is not None
        assert issue.severity == Severity.ERROR
        assert issue.manual_action == ManualAction.REMOVE_FILE
        assert result.stage == ImportStage.AWAITING_PROCEED

    def test_unrecognised_headers_need_kind_override(self, service: SmartImportService) -> None:
        content = b"Video title,Views\nLaunch,10\n"

        (result,) = service.validate_files([_file("videos.csv", content, Platform.YOUTUBE)], "client-1")

        assert result.detected_type == ContentKind.UNKNOWN
        issue = result.find_issue("classification_uncertain")
        assert issue is not None
        assert issue.manual_action == ManualAction.OVERRIDE_CONTENT_KIND

    def test_unexpected_failure_is_isolated_to_its_file(self, service: SmartImportService) -> None:
        class ExplodingDecoder:
            def decode(self, *args: Any, **kwargs: Any) -> Any:
                raise RuntimeError("boom")

        broken = SmartImportService(record_store=InMemoryRecordStore(), decoder=ExplodingDecoder())

        (result,) = broken.validate_files([_file("reach.csv", REACH_CSV)], "client-1")

        assert result.find_issue("processing_failed") is not None
        assert result.has_blocking_errors

    def test_no_files(self, service: SmartImportService) -> None:
        assert service.validate_files([], "client-1") == []


# ---------------------------------------------------------------------------
# Proceed / commit
# ---------------------------------------------------------------------------


class TestProceed:
    def test_run_commits_all_kinds(self, service: SmartImportService, store: InMemoryRecordStore) -> None:
        outcome = service.run([_file("reach.csv", REACH_CSV), _file("posts.csv", POSTS_CSV)], "client-1")

        assert outcome.status == "completed"
        assert outcome.records_imported == 4
        assert outcome.files_processed == 2
        assert outcome.content_kinds == frozenset({ContentKind.REACH, ContentKind.POSTS})
        assert store.daily_metrics[("client-1", "instagram", "reach", "2024-03-02")] == {
            "date": "2024-03-02",
            "reach": 0,
        }
        assert store.entities[("client-1", "instagram", "178")]["likes"] == 10
        targets = {group.content_kind: group.target for group in outcome.commit_groups}
        assert targets == {ContentKind.REACH: DAILY_METRICS_TARGET, ContentKind.POSTS: ENTITIES_TARGET}
        assert outcome.advisory is not None
        assert outcome.advisory.ai_analyzed is False

    def test_blocking_issue_rejects_proceed(self, service: SmartImportService, store: InMemoryRecordStore) -> None:
        results = service.validate_files([_file("reach.csv", BAD_DATE_CSV)], "client-1")

        with pytest.raises(ImportBlockedError) as ctx:
            service.proceed_import(results, "client-1")

        payload = ctx.value.to_dict()
        assert [issue["issue_id"] for issue in payload["blocking_issues"]] == ["invalid_date:r0:date"]
        assert store.calls == 0

    def test_fix_then_proceed(self, service: SmartImportService, store: InMemoryRecordStore) -> None:
        results = service.validate_files([_file("reach.csv", BAD_DATE_CSV)], "client-1")

        service.apply_fix(results[0], "invalid_date:r0:date")
        outcome = service.proceed_import(results, "client-1")

        assert outcome.records_imported == 1
        assert list(store.daily_metrics) == [("client-1", "instagram", "reach", "2024-03-01")]

    def test_overlapping_files_reconcile_before_commit(
        self,
        service: SmartImportService,
        store: InMemoryRecordStore,
    ) -> None:
        later = "Data,Seguidores\n01/03/2024,510\n".encode("utf-8")

        outcome = service.run([_file("a.csv", FOLLOWERS_CSV), _file("b.csv", later)], "client-1")

        assert outcome.records_imported == 1
        assert len(outcome.conflicts) == 1
        assert store.daily_metrics[("client-1", "instagram", "followers", "2024-03-01")]["followers"] == 510

    def test_partial_failure_is_reported_per_group(self, settings: SmartImportSettings) -> None:
        service = SmartImportService(record_store=EntityFailingStore(), settings=settings)

        outcome = service.run([_file("reach.csv", REACH_CSV), _file("posts.csv", POSTS_CSV)], "client-1")

        assert outcome.status == "partial"
        assert outcome.records_imported == 2
        assert outcome.records_failed == 2
        (failed,) = outcome.failed_groups
        assert failed.content_kind == ContentKind.POSTS
        assert failed.error == "entity table locked"

    def test_twitter_posts_commit_with_daily_rollup(
        self,
        service: SmartImportService,
        store: InMemoryRecordStore,
    ) -> None:
        content = (
            "Post id,Date,Post text,Impressions,Engagements\n"
            "1890,2025-02-11 10:00 +0000,launch,100,5\n"
            "1891,2025-02-11 18:30 +0000,follow-up,200,7\n"
        ).encode("utf-8")

        outcome = service.run([_file("tweets.csv", content, Platform.TWITTER)], "client-1")

        assert outcome.status == "completed"
        assert outcome.content_kinds == frozenset({ContentKind.TWITTER_POSTS, ContentKind.TWITTER_DAILY})
        assert store.entities[("client-1", "twitter", "1890")]["impressions"] == 100
        daily = store.daily_metrics[("client-1", "twitter", "twitter_daily", "2025-02-11")]
        assert daily["posts_impressions"] == 300
        assert daily["posts_engagements"] == 12

    def test_commit_of_nothing_is_empty(self, service: SmartImportService) -> None:
        outcome = service.proceed_import([], "client-1")

        assert outcome.status == "empty"
        assert outcome.commit_groups == []


# ---------------------------------------------------------------------------
# Advisory and history
# ---------------------------------------------------------------------------


class TestAdvisory:
    def test_slow_advisory_times_out_to_local_summary(
        self,
        store: InMemoryRecordStore,
        settings: SmartImportSettings,
    ) -> None:
        slow = SlowAdvisory()
        service = SmartImportService(record_store=store, settings=settings, advisory_checker=slow)
        try:
            started = time.monotonic()
            outcome = service.run([_file("reach.csv", REACH_CSV)], "client-1")
            elapsed = time.monotonic() - started
        finally:
            slow.release.set()

        assert outcome.advisory is not None
        assert outcome.advisory.ai_analyzed is False
        assert outcome.records_imported == 2
        assert elapsed < 3

    def test_failing_advisory_falls_back(self, store: InMemoryRecordStore, settings: SmartImportSettings) -> None:
        service = SmartImportService(record_store=store, settings=settings, advisory_checker=BrokenAdvisory())

        outcome = service.run([_file("reach.csv", REACH_CSV)], "client-1")

        assert outcome.advisory.status == "success"
        assert outcome.advisory.stats["imported_count"] == 2

    def test_history_is_recorded(self, store: InMemoryRecordStore, settings: SmartImportSettings) -> None:
        history = RecordingHistory()
        service = SmartImportService(record_store=store, settings=settings, history=history)  # type: ignore[arg-type]

        service.run([_file("reach.csv", REACH_CSV)], "client-1")

        assert history.calls == [{"client_id": "client-1", "platform": "instagram", "status": "completed"}]

    def test_history_failure_does_not_fail_import(
        self,
        store: InMemoryRecordStore,
        settings: SmartImportSettings,
    ) -> None:
        service = SmartImportService(
            record_store=store,
            settings=settings,
            history=RecordingHistory(fail=True),  # type: ignore[arg-type]
        )

        outcome = service.run([_file("reach.csv", REACH_CSV)], "client-1")

        assert outcome.status == "completed"


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class TestImportSession:
    def test_full_lifecycle(self, service: SmartImportService, store: InMemoryRecordStore) -> None:
        session = ImportSession(service=service, client_id="client-1", platform=Platform.INSTAGRAM)
        assert session.stage == ImportStage.PENDING

        session.start([_file("reach.csv", BAD_DATE_CSV)])
        assert session.stage == ImportStage.AWAITING_PROCEED
        assert not session.can_proceed

        with pytest.raises(ImportBlockedError):
            session.proceed()
        assert session.stage == ImportStage.AWAITING_PROCEED

        session.apply_fix("invalid_date:r0:date")
        assert session.can_proceed

        outcome = session.proceed()
        assert session.stage == ImportStage.DONE
        assert outcome.records_imported == 1
        assert store.calls == 1

    def test_failed_proceed_leaves_session_correctable(
        self,
        store: InMemoryRecordStore,
        settings: SmartImportSettings,
    ) -> None:
        class FlakyReconciler(Reconciler):
            def __init__(self) -> None:
                self.failures = 1

            def reconcile(self, results: Any) -> Any:
                if self.failures:
                    self.failures -= 1
                    raise RuntimeError("reconciliation crashed")
                return super().reconcile(results)

        service = SmartImportService(record_store=store, settings=settings, reconciler=FlakyReconciler())
        session = ImportSession(service=service, client_id="client-1", platform=Platform.INSTAGRAM)
        session.start([_file("reach.csv", REACH_CSV)])

        with pytest.raises(RuntimeError):
            session.proceed()

        assert session.stage == ImportStage.AWAITING_PROCEED
        assert session.results[0].stage == ImportStage.AWAITING_PROCEED
        session.correct("reach.csv", ManualAction.EDIT_VALUE, row_index=1, column="alcance", value="900")
        outcome = session.proceed()
        assert session.stage == ImportStage.DONE
        assert store.daily_metrics[("client-1", "instagram", "reach", "2024-03-02")]["reach"] == 900
        assert outcome.records_imported == 2

    def test_cancelled_session_cannot_proceed(self, service: SmartImportService) -> None:
        session = ImportSession(service=service, client_id="client-1", platform=Platform.INSTAGRAM)
        session.start([_file("reach.csv", REACH_CSV)])

        session.cancel()

        assert session.stage == ImportStage.CANCELLED
        with pytest.raises(ImportStateError):
            session.proceed()

    def test_done_session_cannot_be_cancelled(self, service: SmartImportService) -> None:
        session = ImportSession(service=service, client_id="client-1", platform=Platform.INSTAGRAM)
        session.start([_file("reach.csv", REACH_CSV)])
        session.proceed()

        with pytest.raises(ImportStateError):
            session.cancel()

    def test_remove_file_correction(self, service: SmartImportService) -> None:
        session = ImportSession(service=service, client_id="client-1", platform=Platform.INSTAGRAM)
        session.start([_file("reach.csv", REACH_CSV), _file("empty.csv", b"")])
        assert not session.can_proceed

        session.correct("empty.csv", ManualAction.REMOVE_FILE)

        assert [result.source_file_name for result in session.results] == ["reach.csv"]
        assert session.can_proceed

    def test_override_kind_correction(self, service: SmartImportService) -> None:
        session = ImportSession(service=service, client_id="client-1", platform=Platform.INSTAGRAM)
        session.start([_file("mystery.csv", b"Dia,Valor\n01/03/2024,44\n")])
        assert session.results[0].detected_type == ContentKind.UNKNOWN

        session.correct("mystery.csv", ManualAction.OVERRIDE_CONTENT_KIND, content_kind="reach")

        assert session.can_proceed
        assert session.results[0].detected_type == ContentKind.REACH


def test_illegal_transition_raises() -> None:
    with pytest.raises(ImportStateError):
        check_transition(ImportStage.DONE, ImportStage.VALIDATING)
    with pytest.raises(ImportStateError):
        check_transition(ImportStage.PENDING, ImportStage.COMMITTING)
    check_transition(ImportStage.AWAITING_PROCEED, ImportStage.CANCELLED)


def test_registry_evicts_oldest_session(service: SmartImportService) -> None:
    registry = ImportSessionRegistry(max_sessions=2)
    sessions = [
        registry.add(ImportSession(service=service, client_id="client-1", platform=Platform.INSTAGRAM))
        for _ in range(3)
    ]

    assert registry.get(sessions[0].id) is None
    assert registry.get(sessions[2].id) is sessions[2]
    assert registry.remove(sessions[1].id) is sessions[1]
    assert registry.get(sessions[1].id) is None

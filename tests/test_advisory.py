import json

import pytest
from pydantic import ValidationError

from app.config import LLMSettings, SmartImportSettings, get_llm_settings, get_smart_import_settings
from app.domain.import_errors import AdvisoryUnavailableError
from app.services.advisory_service import LLMAdvisoryChecker, LocalAdvisoryChecker, build_advisory_checker
from llm_synthesis.adapter import BaseLLMAdapter, MockLLMAdapter
from llm_synthesis.prompt_builder import AdvisoryPromptBuilder
from llm_synthesis.retry import LLMRetryExhaustedError, generate_with_retry
from llm_synthesis.schema import AdvisoryReport, AdvisoryRequest
from llm_synthesis.validator import LLMOutputValidationError, validate_llm_output


def _request(**overrides) -> AdvisoryRequest:
    data = {
        "client_id": "client-1",
        "platform": "instagram",
        "imported_count": 31,
        "date_range": {"start": "2024-03-01", "end": "2024-03-31"},
        "import_types": ["reach"],
        "file_name": "reach.csv",
    }
    data.update(overrides)
    return AdvisoryRequest(**data)


class _ScriptedAdapter(BaseLLMAdapter):
    def __init__(self, responses: list[str]) -> None:
        self.responses = list(responses)
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.responses.pop(0)


class _FailingAdapter(BaseLLMAdapter):
    def generate(self, prompt: str) -> str:
        raise ConnectionError("connection refused")


_VALID = json.dumps({"status": "warning", "summary": "Two days missing.", "issues": ["2024-03-14"]})


def test_validate_output_accepts_fenced_json_with_prose() -> None:
    raw = f"Here is the report:\n```json\n{_VALID}\n```"

    report = validate_llm_output(raw)

    assert report.status == "warning"
    assert report.issues == ["2024-03-14"]
    assert report.ai_analyzed is True


def test_validate_output_rejects_invalid_json() -> None:
    with pytest.raises(LLMOutputValidationError) as ctx:
        validate_llm_output("not json at all")

    assert ctx.value.stage == "json_parse"


def test_validate_output_rejects_unknown_status() -> None:
    with pytest.raises(LLMOutputValidationError) as ctx:
        validate_llm_output(json.dumps({"status": "great", "summary": "ok"}))

    assert ctx.value.stage == "schema"


def test_report_contract_is_frozen() -> None:
    report = AdvisoryReport(status="success", summary="fine")

    with pytest.raises(ValidationError):
        report.summary = "changed"


def test_retry_recovers_from_one_formatting_error() -> None:
    adapter = _ScriptedAdapter(["{broken", _VALID])

    report = generate_with_retry(adapter, "prompt", max_retries=1)

    assert report.summary == "Two days missing."
    assert len(adapter.prompts) == 2
    assert "# PREVIOUS ANSWER REJECTED" in adapter.prompts[1]
    assert "json_parse" in adapter.prompts[1]


def test_retry_exhaustion_keeps_history() -> None:
    adapter = _ScriptedAdapter(["{broken", "still broken"])

    with pytest.raises(LLMRetryExhaustedError) as ctx:
        generate_with_retry(adapter, "prompt", max_retries=1)

    assert ctx.value.attempts == 2
    assert len(ctx.value.history) == 2


def test_llm_checker_with_mock_adapter() -> None:
    adapter = MockLLMAdapter()

    report = LLMAdvisoryChecker(adapter).analyze_import(_request())

    assert report.status == "success"
    assert report.ai_analyzed is True
    assert len(adapter.prompts) == 1
    assert "reach.csv" in adapter.prompts[0]


def test_model_cannot_claim_local_origin() -> None:
    report = validate_llm_output(json.dumps({"status": "success", "summary": "ok", "ai_analyzed": False}))

    assert report.ai_analyzed is True


def test_llm_checker_wraps_transport_errors() -> None:
    checker = LLMAdvisoryChecker(_FailingAdapter())

    with pytest.raises(AdvisoryUnavailableError):
        checker.analyze_import(_request())


def test_llm_checker_wraps_unusable_output() -> None:
    checker = LLMAdvisoryChecker(_ScriptedAdapter(["nope", "nope"]), max_retries=1)

    with pytest.raises(AdvisoryUnavailableError):
        checker.analyze_import(_request())


def test_local_checker_summarizes_statistics() -> None:
    report = LocalAdvisoryChecker().analyze_import(_request())

    assert report.status == "success"
    assert report.ai_analyzed is False
    assert report.stats["imported_count"] == 31
    assert "Date range: 2024-03-01 to 2024-03-31." in report.details


def test_local_checker_warns_on_empty_import() -> None:
    report = LocalAdvisoryChecker().analyze_import(_request(imported_count=0, date_range=None))

    assert report.status == "warning"
    assert report.issues == ["No records were imported."]


def test_prompt_contains_statistics_and_schema() -> None:
    prompt = AdvisoryPromptBuilder().build_prompt(_request())

    assert '"imported_count": 31' in prompt
    assert "# OUTPUT SCHEMA" in prompt
    assert "instagram platform" in prompt


def test_build_checker_selects_mode() -> None:
    local = build_advisory_checker(SmartImportSettings(advisory_mode="local"), LLMSettings(api_key="sk-test"))
    keyless = build_advisory_checker(SmartImportSettings(advisory_mode="llm"), LLMSettings(api_key=None))
    remote = build_advisory_checker(SmartImportSettings(advisory_mode="llm"), LLMSettings(api_key="sk-test"))

    assert isinstance(local, LocalAdvisoryChecker)
    assert isinstance(keyless, LocalAdvisoryChecker)
    assert isinstance(remote, LLMAdvisoryChecker)


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SMART_IMPORT_MAX_WORKERS", "0")
    monkeypatch.setenv("SMART_IMPORT_ADVISORY_MODE", "LLM")
    monkeypatch.setenv("SMART_IMPORT_RECORD_STORE", "redis")
    monkeypatch.setenv("SMART_IMPORT_FUZZY_THRESHOLD", "not-a-number")
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-fallback")
    get_smart_import_settings.cache_clear()
    get_llm_settings.cache_clear()
    try:
        settings = get_smart_import_settings()
        llm_settings = get_llm_settings()
    finally:
        get_smart_import_settings.cache_clear()
        get_llm_settings.cache_clear()

    assert settings.max_workers == 1
    assert settings.advisory_mode == "llm"
    assert settings.record_store == "sql"
    assert settings.fuzzy_threshold == 0.84
    assert llm_settings.api_key == "sk-fallback"

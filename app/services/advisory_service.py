"""
app/services/advisory_service.py

Post-import advisory checkers: LLM-backed and deterministic local.
"""

from __future__ import annotations

import logging
from typing import Protocol

from app.config import LLMSettings, SmartImportSettings, get_llm_settings, get_smart_import_settings
from app.domain.import_errors import AdvisoryUnavailableError
from llm_synthesis.adapter import BaseLLMAdapter, OpenAILLMAdapter
from llm_synthesis.prompt_builder import AdvisoryPromptBuilder
from llm_synthesis.retry import LLMRetryExhaustedError, generate_with_retry
from llm_synthesis.schema import AdvisoryReport, AdvisoryRequest
from llm_synthesis.validator import LLMOutputValidationError

logger = logging.getLogger(__name__)


class AdvisoryChecker(Protocol):
    def analyze_import(self, request: AdvisoryRequest) -> AdvisoryReport:
        ...


class LocalAdvisoryChecker:
    """
    Deterministic summary built from the import statistics alone.
    """

    def analyze_import(self, request: AdvisoryRequest) -> AdvisoryReport:
        details = [f"{request.imported_count} record(s) imported for {request.platform}."]
        if request.date_range:
            details.append(
                f"Date range: {request.date_range.get('start')} to {request.date_range.get('end')}."
            )
        if request.import_types:
            details.append(f"Content kinds: {', '.join(request.import_types)}.")

        issues: list[str] = []
        recommendations: list[str] = []
        if request.imported_count == 0:
            issues.append("No records were imported.")
            recommendations.append("Check that the uploaded files contain data rows for this platform.")

        return AdvisoryReport(
            status="success" if not issues else "warning",
            summary=f"Imported {request.imported_count} record(s) from {request.file_name or 'the uploaded files'}.",
            details=details,
            issues=issues,
            recommendations=recommendations,
            stats={
                "imported_count": request.imported_count,
                "import_types": list(request.import_types),
                "date_range": request.date_range,
            },
            ai_analyzed=False,
        )


class LLMAdvisoryChecker:
    """
    Asks an OpenAI-compatible model for a narrative health report.
    """

    def __init__(
        self,
        adapter: BaseLLMAdapter,
        *,
        prompt_builder: AdvisoryPromptBuilder | None = None,
        max_retries: int = 1,
    ) -> None:
        self._adapter = adapter
        self._prompt_builder = prompt_builder or AdvisoryPromptBuilder()
        self._max_retries = max(0, max_retries)

    def analyze_import(self, request: AdvisoryRequest) -> AdvisoryReport:
        prompt = self._prompt_builder.build_prompt(request)
        try:
            return generate_with_retry(self._adapter, prompt, max_retries=self._max_retries)
        except (LLMOutputValidationError, LLMRetryExhaustedError) as exc:
            raise AdvisoryUnavailableError(f"Advisory output was not usable: {exc}") from exc
        except Exception as exc:  # noqa: BLE001 - transport errors vary by client library
            raise AdvisoryUnavailableError(f"Advisory service call failed: {exc}") from exc


def build_advisory_checker(
    settings: SmartImportSettings | None = None,
    llm_settings: LLMSettings | None = None,
) -> AdvisoryChecker:
    """
    Return the configured checker; LLM mode without an API key degrades to local.
    """

    settings = settings or get_smart_import_settings()
    llm_settings = llm_settings or get_llm_settings()
    if settings.advisory_mode != "llm":
        return LocalAdvisoryChecker()
    if not llm_settings.api_key:
        logger.warning("SMART_IMPORT_ADVISORY_MODE=llm but no LLM_API_KEY/OPENAI_API_KEY; using local advisory")
        return LocalAdvisoryChecker()

    adapter = OpenAILLMAdapter(
        model=llm_settings.model,
        max_tokens=llm_settings.max_tokens,
        api_key=llm_settings.api_key,
        base_url=llm_settings.base_url,
        timeout=settings.advisory_timeout_seconds,
    )
    return LLMAdvisoryChecker(adapter, max_retries=llm_settings.max_retries)

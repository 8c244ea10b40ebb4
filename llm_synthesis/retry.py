"""Retry of advisory generation on malformed answers.

Only parse and schema failures are retried, with the validation errors fed
back to the model. Transport errors from the adapter propagate unchanged.
"""

import logging
from typing import List

from llm_synthesis.adapter import BaseLLMAdapter
from llm_synthesis.schema import AdvisoryReport
from llm_synthesis.validator import LLMOutputValidationError, validate_llm_output

logger = logging.getLogger(__name__)


class LLMRetryExhaustedError(Exception):
    """Every attempt produced an invalid answer; ``history`` keeps each failure."""

    def __init__(self, attempts: int, history: List[LLMOutputValidationError]) -> None:
        self.attempts = attempts
        self.history = history
        self.last_error = history[-1]
        super().__init__(f"LLM output invalid after {attempts} attempt(s). Last error: {self.last_error}")


def corrective_prompt(prompt: str, error: LLMOutputValidationError) -> str:
    problems = "\n".join(f"- {line}" for line in error.errors)
    return (
        f"{prompt}\n\n# PREVIOUS ANSWER REJECTED\n\n"
        f"Your previous answer failed validation ({error.stage}):\n{problems}\n"
        "Answer again with a single JSON object that matches the schema."
    )


def generate_with_retry(
    adapter: BaseLLMAdapter,
    prompt: str,
    max_retries: int = 1,
) -> AdvisoryReport:
    """Ask ``adapter`` for a report, allowing ``max_retries`` corrective attempts.

    Raises:
        LLMRetryExhaustedError: If no attempt produced a valid report.
    """
    total_attempts = 1 + max(0, max_retries)
    history: List[LLMOutputValidationError] = []
    current_prompt = prompt

    for attempt in range(1, total_attempts + 1):
        raw = adapter.generate(current_prompt)
        try:
            report = validate_llm_output(raw)
        except LLMOutputValidationError as exc:
            history.append(exc)
            logger.warning(
                "Advisory attempt %d/%d rejected at stage '%s': %s",
                attempt,
                total_attempts,
                exc.stage,
                "; ".join(exc.errors),
            )
            current_prompt = corrective_prompt(prompt, exc)
            continue

        if attempt > 1:
            logger.info("Advisory output validated on attempt %d/%d", attempt, total_attempts)
        return report

    raise LLMRetryExhaustedError(attempts=total_attempts, history=history)

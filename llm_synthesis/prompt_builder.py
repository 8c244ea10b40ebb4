"""Structured prompt builder for the post-import advisory check."""

import json

from llm_synthesis.schema import AdvisoryReport, AdvisoryRequest

_SCHEMA_JSON = json.dumps(
    AdvisoryReport.model_json_schema(),
    indent=2,
)

_EXAMPLE_OUTPUT = json.dumps(
    {
        "status": "warning",
        "summary": "31 daily reach records imported for March 2024; two days are missing.",
        "details": [
            "Date range covers 2024-03-01 to 2024-03-31",
            "Only the reach metric was imported",
        ],
        "issues": ["No data for 2024-03-14 and 2024-03-15"],
        "recommendations": ["Re-export the missing days from Instagram Insights"],
        "stats": {"imported_count": 31},
    },
    indent=2,
)

_SYSTEM_INSTRUCTIONS = """\
You are a data quality analyst reviewing a social media analytics import.

STRICT RULES:
- Use ONLY the import statistics provided below. Do not invent numbers.
- "status" is "success" when nothing needs attention, "warning" when the
  user should double-check something, "error" when the import looks wrong.
- Return strictly valid JSON matching the schema defined below.
- Do NOT include any text outside the JSON object.
- Do NOT wrap the JSON in markdown code fences.
"""


class AdvisoryPromptBuilder:
    """Builds a deterministic prompt from import statistics."""

    def build_prompt(self, request: AdvisoryRequest) -> str:
        """Build the full advisory prompt.

        Args:
            request: Statistics of the import that was just committed.

        Returns:
            A fully formatted prompt string ready for LLM consumption.
        """
        data = json.dumps(request.model_dump(), indent=2, default=str)
        return (
            f"{_SYSTEM_INSTRUCTIONS}\n"
            f"# IMPORT STATISTICS\n\n```json\n{data}\n```\n\n"
            f"# OUTPUT SCHEMA\n\n"
            f"Your response MUST conform to this JSON schema:\n\n"
            f"```json\n{_SCHEMA_JSON}\n```\n\n"
            f"# EXAMPLE OUTPUT\n\n"
            f"```json\n{_EXAMPLE_OUTPUT}\n```\n\n"
            f"# TASK\n\n"
            f"Assess whether this import looks complete and plausible for the "
            f"{request.platform} platform and answer with a single JSON object."
        )

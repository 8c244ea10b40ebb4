"""
app/mappers/schema_classifier.py

Assigns a ContentKind to a decoded file from its header signature.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Sequence

from app.domain.smart_import import ContentKind, Platform
from app.mappers.content_rules import CONTENT_RULES, ContentRule
from app.mappers.value_parsers import fold_accents

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_FLOOR = 0.75
DEFAULT_FORBIDDEN_PENALTY = 0.5


@lru_cache(maxsize=512)
def _token_pattern(token: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![a-z0-9]){re.escape(token)}(?![a-z0-9])")


def normalize_label(value: str) -> str:
    return " ".join(fold_accents(value).lower().replace('"', " ").split())


@dataclass(frozen=True)
class RuleScore:
    content_kind: ContentKind
    score: float
    matched_groups: int
    total_groups: int
    forbidden_hits: tuple[str, ...]
    order: int


class SchemaClassifier:
    """
    Scores every rule of the declared platform and returns the best match.
    """

    def __init__(
        self,
        *,
        rules: Sequence[ContentRule] = CONTENT_RULES,
        confidence_floor: float = DEFAULT_CONFIDENCE_FLOOR,
        forbidden_penalty: float = DEFAULT_FORBIDDEN_PENALTY,
    ) -> None:
        self._rules = tuple(rules)
        self._confidence_floor = max(0.0, min(1.0, confidence_floor))
        self._forbidden_penalty = max(0.0, forbidden_penalty)

    @property
    def confidence_floor(self) -> float:
        return self._confidence_floor

    def classify(
        self,
        headers: Sequence[str],
        platform: Platform | None = None,
        preamble: Sequence[str] = (),
    ) -> tuple[ContentKind, float]:
        """
        Return ``(kind, confidence)``; ``(UNKNOWN, 0.0)`` when no rule clears the floor.
        """

        scores = self.score_all(headers, platform=platform, preamble=preamble)
        eligible = [item for item in scores if item.score >= self._confidence_floor]
        if not eligible:
            logger.info(
                "No content rule cleared floor=%.2f platform=%s headers=%s",
                self._confidence_floor,
                platform.value if platform else None,
                list(headers)[:12],
            )
            return ContentKind.UNKNOWN, 0.0

        best = min(eligible, key=lambda item: (-item.score, -item.total_groups, item.order))
        return best.content_kind, round(min(1.0, best.score), 4)

    def score_all(
        self,
        headers: Sequence[str],
        *,
        platform: Platform | None = None,
        preamble: Sequence[str] = (),
    ) -> list[RuleScore]:
        labels = [normalize_label(header) for header in headers if header and header.strip()]
        labels.extend(normalize_label(line) for line in preamble if line and line.strip())
        if not labels:
            return []

        scores: list[RuleScore] = []
        for order, rule in enumerate(self._rules):
            if platform is not None and rule.platform != platform:
                continue
            matched = sum(
                1 for group in rule.required_groups if any(self._has_token(labels, token) for token in group)
            )
            forbidden_hits = tuple(token for token in rule.forbidden_tokens if self._has_token(labels, token))
            total = len(rule.required_groups)
            score = (matched / total if total else 0.0) - self._forbidden_penalty * len(forbidden_hits)
            scores.append(
                RuleScore(
                    content_kind=rule.content_kind,
                    score=score,
                    matched_groups=matched,
                    total_groups=total,
                    forbidden_hits=forbidden_hits,
                    order=order,
                )
            )
        return scores

    @staticmethod
    def _has_token(labels: Sequence[str], token: str) -> bool:
        pattern = _token_pattern(normalize_label(token))
        return any(pattern.search(label) for label in labels)

"""Classifier adapter: the capability boundary around text classification.

The rest of the engine depends only on classify() and the outcome types.
No retries happen here. Every failure (no backend, empty text, timeout,
backend exception, empty result) is absorbed and reported as Unavailable,
so the technique selector's deterministic fallthrough always has a next
step.
"""

import asyncio
from typing import List, Optional

import structlog

from clarity.classifier.client import ClassifierBackend
from clarity.domain.models.classification import (
    ClassificationOutcome,
    Classified,
    LabelScore,
    Unavailable,
)

log = structlog.get_logger(__name__)


class ClassifierAdapter:
    """Confidence-sorted classification with failures reported as values."""

    def __init__(self, backend: Optional[ClassifierBackend], timeout: float = 10.0):
        self._backend = backend
        self._timeout = timeout

    @property
    def available(self) -> bool:
        return self._backend is not None

    async def classify(
        self, text: Optional[str], candidate_labels: List[str]
    ) -> ClassificationOutcome:
        """Classify `text` against `candidate_labels`.

        Returns:
            Classified with results sorted by descending confidence,
            or Unavailable describing why no result exists
        """
        if self._backend is None:
            return Unavailable(reason="no_backend")
        if not text or not text.strip():
            return Unavailable(reason="empty_text")
        if not candidate_labels:
            return Unavailable(reason="no_labels")

        try:
            scores = await asyncio.wait_for(
                self._backend.score(text.strip(), list(candidate_labels)),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            log.warning("classification_unavailable", reason="timeout", timeout=self._timeout)
            return Unavailable(reason="timeout")
        except Exception as e:
            log.warning(
                "classification_unavailable",
                reason="backend_error",
                error_type=type(e).__name__,
                message=str(e),
            )
            return Unavailable(reason="backend_error")

        allowed = set(candidate_labels)
        results = sorted(
            (
                LabelScore(label=s.label, confidence=min(max(s.confidence, 0.0), 1.0))
                for s in scores
                if s.label in allowed
            ),
            key=lambda s: s.confidence,
            reverse=True,
        )
        if not results:
            log.info("classification_unavailable", reason="empty_result")
            return Unavailable(reason="empty_result")

        log.info(
            "text_classified",
            top_label=results[0].label,
            top_confidence=round(results[0].confidence, 4),
        )
        return Classified(results=results)

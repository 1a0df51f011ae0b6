"""
Text classification backends.

A backend scores a text against candidate labels and returns raw
LabelScore lists. Backends may raise; the ClassifierAdapter absorbs every
failure and turns it into an Unavailable outcome.

Supported providers:
- embedding: local sentence-transformers similarity (lazy-loaded model)
- http: remote zero-shot classification endpoint
  (request {"inputs", "parameters": {"candidate_labels", "multi_label"}},
  response {"labels": [...], "scores": [...]})
"""

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
import numpy as np
import structlog

from clarity.core.config import Settings
from clarity.core.exceptions import ClassificationUnavailable, ConfigurationError
from clarity.domain.models.classification import LabelScore

log = structlog.get_logger(__name__)

# Softmax temperature for turning cosine similarities into confidences.
# Similarities cluster in a narrow band; a low temperature spreads them.
SIMILARITY_TEMPERATURE = 0.05


class ClassifierBackend(ABC):
    """Abstract base for classification providers."""

    @abstractmethod
    async def score(self, text: str, candidate_labels: List[str]) -> List[LabelScore]:
        """
        Score `text` against every candidate label.

        Args:
            text: Non-empty user text
            candidate_labels: Closed label set

        Returns:
            One LabelScore per label (any order)
        """
        pass


# =============================================================================
# Embedding similarity backend
# =============================================================================


class EmbeddingClassifier(ClassifierBackend):
    """
    Label scoring via sentence-transformers embeddings.

    Lazy Loading:
        The model is loaded on first use, off the event loop.

    Cache:
        Label embeddings are computed once per label set and reused;
        the label set is fixed for the process lifetime.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2", model: Any = None):
        self.model_name = model_name
        self._model: Optional[Any] = model
        self._label_cache: Dict[tuple, np.ndarray] = {}

    @property
    def model(self) -> Any:
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            log.info("loading_classifier_model", model=self.model_name)
            self._model = SentenceTransformer(self.model_name)
            log.info("classifier_model_loaded", model=self.model_name)
        return self._model

    def _encode(self, texts: List[str]) -> np.ndarray:
        vectors = np.asarray(self.model.encode(texts), dtype=np.float32)
        norms = np.linalg.norm(vectors, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        return vectors / norms

    def _score_sync(self, text: str, labels: List[str]) -> List[LabelScore]:
        key = tuple(labels)
        if key not in self._label_cache:
            self._label_cache[key] = self._encode(labels)
        label_vectors = self._label_cache[key]

        text_vector = self._encode([text])[0]
        similarities = label_vectors @ text_vector

        logits = similarities / SIMILARITY_TEMPERATURE
        logits = logits - logits.max()
        weights = np.exp(logits)
        confidences = weights / weights.sum()

        return [
            LabelScore(label=label, confidence=float(conf))
            for label, conf in zip(labels, confidences)
        ]

    async def score(self, text: str, candidate_labels: List[str]) -> List[LabelScore]:
        return await asyncio.to_thread(self._score_sync, text, candidate_labels)


# =============================================================================
# Remote zero-shot backend
# =============================================================================


class HttpClassifier(ClassifierBackend):
    """Zero-shot classification over HTTP.

    Uses httpx for async HTTP calls. Single request per call, no retries:
    the adapter above treats any failure as "unavailable".
    """

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        api_key: Optional[str] = None,
        multi_label: bool = True,
    ):
        if not url:
            raise ConfigurationError("CLASSIFIER_URL not configured for http provider.")
        self.url = url
        self.timeout = timeout
        self.api_key = api_key
        self.multi_label = multi_label

    async def score(self, text: str, candidate_labels: List[str]) -> List[LabelScore]:
        headers = {"content-type": "application/json"}
        if self.api_key:
            headers["authorization"] = f"Bearer {self.api_key}"

        payload = {
            "inputs": text,
            "parameters": {
                "candidate_labels": candidate_labels,
                "multi_label": self.multi_label,
            },
        }

        start = time.perf_counter()
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.url, headers=headers, json=payload)
            response.raise_for_status()
            data = response.json()

        latency_ms = (time.perf_counter() - start) * 1000
        log.debug(
            "classifier_http_complete",
            latency_ms=round(latency_ms, 2),
            label_count=len(candidate_labels),
        )
        return _parse_zero_shot_response(data)


def _parse_zero_shot_response(data: Any) -> List[LabelScore]:
    """Accept {"labels", "scores"} or a list of {"label", "score"} dicts."""
    if isinstance(data, list) and len(data) == 1 and isinstance(data[0], dict) and "labels" in data[0]:
        data = data[0]

    if isinstance(data, dict) and "labels" in data and "scores" in data:
        labels, scores = data["labels"], data["scores"]
        if len(labels) != len(scores):
            raise ClassificationUnavailable("Mismatched labels/scores in response")
        return [LabelScore(label=str(l), confidence=float(s)) for l, s in zip(labels, scores)]

    if isinstance(data, list):
        return [
            LabelScore(label=str(item["label"]), confidence=float(item["score"]))
            for item in data
        ]

    raise ClassificationUnavailable("Unrecognized classifier response format")


def get_classifier_backend(settings: Settings) -> Optional[ClassifierBackend]:
    """
    Build the configured backend, or None when classification is disabled.

    Raises:
        ConfigurationError: If the provider needs settings that are missing
    """
    provider = settings.classifier_provider
    if provider == "none":
        log.info("classifier_disabled")
        return None
    if provider == "embedding":
        return EmbeddingClassifier(model_name=settings.classifier_model)
    if provider == "http":
        return HttpClassifier(
            url=settings.classifier_url or "",
            timeout=settings.classifier_timeout,
            api_key=settings.classifier_api_key,
        )
    raise ConfigurationError(f"Unknown classifier provider: {provider}")

"""Classification outcome types at the classifier boundary.

The adapter never returns a bare None. Callers match on the two variants:

    outcome = await adapter.classify(text, labels)
    if isinstance(outcome, Classified) and outcome.meets(threshold):
        ...
    else:
        ...  # Unavailable and low confidence are handled identically
"""

from dataclasses import dataclass, field
from typing import List, Optional, Union


@dataclass(frozen=True)
class LabelScore:
    """One candidate label with its confidence (0-1)."""

    label: str
    confidence: float


@dataclass(frozen=True)
class Classified:
    """Classifier produced scores, sorted by descending confidence."""

    results: List[LabelScore] = field(default_factory=list)

    @property
    def top(self) -> Optional[LabelScore]:
        return self.results[0] if self.results else None

    def meets(self, threshold: float) -> bool:
        """True if the top label's confidence is >= threshold."""
        top = self.top
        return top is not None and top.confidence >= threshold


@dataclass(frozen=True)
class Unavailable:
    """Classifier absent, failed, timed out, or the text was empty."""

    reason: str


ClassificationOutcome = Union[Classified, Unavailable]

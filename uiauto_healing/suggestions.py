"""
@file suggestions.py
@brief Locator-update suggestions derived from recurring healing events.

Suggestions are recomputed from the event log on demand and never
stored. Applying one is a separate, explicit repository write.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Tuple

from .config import HealingConfig
from .exceptions import ObjectNotFoundError
from .locators import CandidateLocator
from .log import get_logger

if TYPE_CHECKING:
    from .repository import ObjectRepository, UIObject
    from .telemetry import HealingEvent

logger = get_logger(__name__)


@dataclass(frozen=True)
class UpdateSuggestion:
    object_id: Optional[str]
    old_locator: CandidateLocator
    new_locator: CandidateLocator
    strategy: str
    frequency: int
    last_seen: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "object_id": self.object_id,
            "old_locator": self.old_locator.to_dict(),
            "new_locator": self.new_locator.to_dict(),
            "strategy": self.strategy,
            "frequency": self.frequency,
            "last_seen": self.last_seen,
        }


def suggest_updates(
    events: Iterable["HealingEvent"],
    min_frequency: Optional[int] = None,
) -> List[UpdateSuggestion]:
    """
    Group events by (object_id, original locator) and keep frequent groups.

    The replacement locator and strategy come from the latest event of
    each group. Result is sorted by frequency, highest first; equal
    frequencies keep the order in which groups first appeared.

    @param events Healing events in log order, or a HealingTelemetry
    @param min_frequency Threshold (HealingConfig.min_suggestion_frequency if None)
    """
    if hasattr(events, "events"):
        events = events.events()
    threshold = min_frequency if min_frequency is not None else HealingConfig.current().min_suggestion_frequency

    groups: Dict[Tuple[str, Tuple[str, str]], List["HealingEvent"]] = {}
    for event in events:
        key = (event.object_id or "", event.original_locator.key)
        groups.setdefault(key, []).append(event)

    suggestions: List[UpdateSuggestion] = []
    for group in groups.values():
        if len(group) < threshold:
            continue
        latest = group[-1]
        suggestions.append(UpdateSuggestion(
            object_id=latest.object_id,
            old_locator=group[0].original_locator,
            new_locator=latest.resulting_locator,
            strategy=latest.strategy,
            frequency=len(group),
            last_seen=latest.timestamp,
        ))

    suggestions.sort(key=lambda s: s.frequency, reverse=True)
    return suggestions


def apply_suggestion(repository: "ObjectRepository", suggestion: UpdateSuggestion) -> "UIObject":
    """
    Accept a suggestion: promote the new locator to primary and drop the
    failing one from the object's chain.

    @throws ObjectNotFoundError if the suggestion has no object id or the object is gone
    """
    obj = repository.require(suggestion.object_id)
    drop = suggestion.old_locator if suggestion.old_locator.key != suggestion.new_locator.key else None
    new_chain = obj.chain.promote(suggestion.new_locator, drop=drop)
    logger.info(
        f"Applying suggestion for {obj.name} ({obj.id}): "
        f"{suggestion.old_locator.describe()} -> {suggestion.new_locator.describe()} "
        f"(seen {suggestion.frequency}x via {suggestion.strategy})"
    )
    return repository.update_locator_chain(obj.id, new_chain)

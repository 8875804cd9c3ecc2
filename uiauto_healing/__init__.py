# uiauto_healing/__init__.py
"""
UIAuto Healing - Locator lifecycle for self-healing UI automation.

This package provides:
- Classifier: detection of framework/build-generated identifiers
- Extractor: ranked locator chains from captured attribute snapshots
- Repository: fingerprint-deduplicated YAML object store
- Resolver: self-healing resolution through fallbacks and heuristics
- Telemetry: healing event log and locator-update suggestions
- Interfaces: abstract environment accessor for platform drivers
"""

from uiauto_healing.attributes import CapturedAttributes, PathNode, Platform, walk_ancestry
from uiauto_healing.capture import capture
from uiauto_healing.classifier import is_dynamic, is_unstable_class
from uiauto_healing.config import HealingConfig, available_presets
from uiauto_healing.exceptions import (
    HealingError,
    ConfigError,
    QueryTimeoutError,
    AccessorFaultError,
    RepositoryWriteConflictError,
    ObjectNotFoundError,
    ResolutionCancelledError,
    LocatorAttempt,
)
from uiauto_healing.extractor import LocatorExtractor, build_structural_path
from uiauto_healing.fingerprint import compute_fingerprint
from uiauto_healing.interfaces import IEnvironmentAccessor
from uiauto_healing.locators import CandidateLocator, LocatorChain, LocatorKind, DEFAULT_RELIABILITY
from uiauto_healing.log import get_logger, setup_logging
from uiauto_healing.repository import ObjectRepository, UIObject, UsageOutcome, UsageStats
from uiauto_healing.resolution import ResolutionResult, Strategy
from uiauto_healing.resolutionlogger import RESOLUTION_LOGGER, ResolutionLogger
from uiauto_healing.resolver import HealingResolver
from uiauto_healing.suggestions import UpdateSuggestion, apply_suggestion, suggest_updates
from uiauto_healing.telemetry import HealingEvent, HealingTelemetry

__all__ = [
    "CapturedAttributes",
    "PathNode",
    "Platform",
    "walk_ancestry",
    "capture",
    "is_dynamic",
    "is_unstable_class",
    "HealingConfig",
    "available_presets",
    "HealingError",
    "ConfigError",
    "QueryTimeoutError",
    "AccessorFaultError",
    "RepositoryWriteConflictError",
    "ObjectNotFoundError",
    "ResolutionCancelledError",
    "LocatorAttempt",
    "LocatorExtractor",
    "build_structural_path",
    "compute_fingerprint",
    "IEnvironmentAccessor",
    "CandidateLocator",
    "LocatorChain",
    "LocatorKind",
    "DEFAULT_RELIABILITY",
    "get_logger",
    "setup_logging",
    "ObjectRepository",
    "UIObject",
    "UsageOutcome",
    "UsageStats",
    "ResolutionResult",
    "Strategy",
    "RESOLUTION_LOGGER",
    "ResolutionLogger",
    "HealingResolver",
    "UpdateSuggestion",
    "apply_suggestion",
    "suggest_updates",
    "HealingEvent",
    "HealingTelemetry",
]

__version__ = "1.0.0"

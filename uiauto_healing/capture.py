"""
@file capture.py
@brief Capture-time flow: read attributes, extract the chain, store the object.
"""

from __future__ import annotations

from typing import Any, Optional

from .extractor import LocatorExtractor
from .interfaces import IEnvironmentAccessor
from .log import get_logger
from .repository import ObjectRepository

logger = get_logger(__name__)


def capture(
    environment: IEnvironmentAccessor,
    handle: Any,
    repository: ObjectRepository,
    extractor: Optional[LocatorExtractor] = None,
    name: Optional[str] = None,
) -> str:
    """
    Snapshot an interacted element and return its object id.

    A repeat capture of the same logical element returns the existing id;
    its stored chain is left untouched.

    @param environment Accessor that produced the handle
    @param handle Platform element handle
    @param repository Open object repository
    @param extractor Extractor to use (default tables if None)
    @param name Object name for a new object (derived if None)
    @return Object id
    """
    attrs = environment.read_attributes(handle)
    chain = (extractor or LocatorExtractor()).extract(attrs)
    object_id = repository.upsert(attrs, chain, name=name)
    logger.debug(f"Captured <{attrs.tag}> as {object_id}: primary={chain.primary.describe()}")
    return object_id

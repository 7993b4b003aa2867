# src/met24_router/core/privacy.py
from __future__ import annotations

import logging
from typing import Dict, Mapping, TypeVar

from met24_router.models import PrivacyLevel, Provider

logger = logging.getLogger(__name__)

A = TypeVar("A")


class PrivacyGate:
    """
    Filters the provider registry by the request's declared sensitivity.

    Anything other than PUBLIC is sensitive and admits only the local,
    zero-network model. This is the only barrier keeping sensitive text on
    the device, so it never looks at cost, complexity or preferences.
    """

    def admit(self, privacy_level: PrivacyLevel, registry: Mapping[Provider, A]) -> Dict[Provider, A]:
        if privacy_level.is_sensitive:
            admitted = {p: a for p, a in registry.items() if p.is_local}
            logger.info(
                "Privacy %s: external providers excluded (%d dropped)",
                privacy_level.value,
                len(registry) - len(admitted),
            )
            return admitted
        return dict(registry)

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from .errors import AllVariantsFailed, BackendError
from .normalizer import NormalizedResult, ResultNormalizer
from .payloads import PayloadVariant

logger = logging.getLogger(__name__)

Execute = Callable[[Dict[str, Any]], Any]


class FallbackExecutor:
    """
    Try payload variants in order and keep the first one the backend accepts.

    Each variant is a different payload shape, attempted once and strictly
    sequentially. Only ``BackendError`` counts as a variant failure; it is
    recorded and the next variant is tried. When every variant fails the
    recorded attempts are raised together as ``AllVariantsFailed``.
    """

    def __init__(self, normalizer: Optional[ResultNormalizer] = None) -> None:
        self.normalizer = normalizer or ResultNormalizer()

    def run(self, variants: Sequence[PayloadVariant], execute: Execute, kind: str) -> NormalizedResult:
        if not variants:
            raise AllVariantsFailed([])

        failures: List[Dict[str, str]] = []
        for position, variant in enumerate(variants, start=1):
            logger.debug("Trying %s variant %d/%d: %s", kind, position, len(variants), variant.label)
            try:
                raw = execute(variant.payload)
            except BackendError as exc:
                logger.warning("Variant '%s' failed for %s: %s", variant.label, kind, exc.message)
                failures.append({"variant": variant.label, "error": exc.message})
                continue

            result = self.normalizer.normalize(raw, kind)
            result.variant = variant.label
            result.failed_variants = failures
            logger.info(
                "%s succeeded with variant '%s' after %d failed attempt(s)",
                kind,
                variant.label,
                len(failures),
            )
            return result

        logger.error("All %d variant(s) failed for %s", len(failures), kind)
        raise AllVariantsFailed(failures)


__all__ = ["FallbackExecutor"]

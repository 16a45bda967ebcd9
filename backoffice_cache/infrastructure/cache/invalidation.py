#!/usr/bin/env python3
"""
Domain-Driven Cache Invalidation

Maps "an entity of type X changed" to the cache patterns that may now hold
outdated data:

    await invalidator.on_entity_changed("product", {"shopId": 3})
        -> inventory-summary:*, products:*, inventory-analytics:*,
           low-stock-alerts:*, dashboard:*

Contract: call after the write has committed. Invalidating before commit
lets a concurrent reader repopulate the cache from the old row.

Template placeholders:
    {name}           replaced by the encoded scope value
    {name|default}   default text used when the scope has no value
    A placeholder with neither a value nor a default cuts the template there
    and widens it to a prefix pattern: "auth-session:userId:{userId}" with no
    userId becomes "auth-session:userId:*".

Invalidation is best-effort: each pattern is attempted, failures are logged
with their namespace and counted, and the remaining patterns still run.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from backoffice_cache.core.config.constants import WILDCARD, ErrorKind, Stage
from backoffice_cache.core.exceptions import InvalidationPartialFailure
from backoffice_cache.core.logging.logger import get_logger, log_stage
from backoffice_cache.infrastructure.cache.cache_facade import CacheFacade, entry_namespace
from backoffice_cache.infrastructure.cache.key_codec import KeyCodec

logger = get_logger(__name__)

_PLACEHOLDER = re.compile(r"\{(\w+)(?:\|([^}]*))?\}")

_INVENTORY_PATTERNS = (
    "inventory-summary:*",
    "products:*",
    "inventory-analytics:*",
    "low-stock-alerts:*",
    "dashboard:*",
)

DEFAULT_RULES: dict[str, tuple[str, ...]] = {
    "product": _INVENTORY_PATTERNS,
    "inventory": _INVENTORY_PATTERNS,
    "category": ("categories:*", "inventory-summary:*", "products:*"),
    "shop": ("shops:*", "inventory-summary:*", "dashboard:*"),
    "customer": ("customers:*", "invoices:*"),
    "invoice": ("invoices:*", "invoice-statistics:*", "inventory-summary:*", "dashboard:*"),
    "payment": ("invoices:*", "invoice-statistics:*"),
    "purchase-invoice": ("purchase-invoices:*", "inventory-summary:*"),
    "transfer": ("transfers:*", "inventory-summary:*", "dashboard:*"),
    "user": ("auth-session:userId:{userId}", "auth-permissions:userId:{userId}"),
    "role": ("auth-role-permissions:roleId:{roleId}", "auth-permissions:*"),
}


@dataclass
class InvalidationReport:
    """Outcome of one on_entity_changed call."""

    entity_type: str
    patterns: list[str] = field(default_factory=list)
    removed: int = 0
    failures: list[dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        """Raise InvalidationPartialFailure if any pattern failed."""
        if self.failures:
            raise InvalidationPartialFailure(
                f"{len(self.failures)} of {len(self.patterns)} invalidation patterns failed "
                f"for {self.entity_type!r}",
                failures=self.failures,
                details={"entity_type": self.entity_type},
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "patterns": list(self.patterns),
            "removed": self.removed,
            "failures": list(self.failures),
        }


def expand_template(template: str, scope: Mapping[str, Any] | None = None) -> str:
    """
    Substitute scope values into a pattern template.

    Scope values are encoded exactly like KeyCodec encodes parameter values,
    so "{userId}" with userId=42 matches keys built with {"userId": 42}.
    """
    scope = scope or {}
    parts: list[str] = []
    position = 0

    for match in _PLACEHOLDER.finditer(template):
        parts.append(template[position:match.start()])
        name, default = match.group(1), match.group(2)
        value = scope.get(name)

        if value is not None:
            parts.append(KeyCodec.encode_value(value))
        elif default is not None:
            parts.append(default)
        else:
            return "".join(parts) + WILDCARD
        position = match.end()

    parts.append(template[position:])
    return "".join(parts)


class DomainInvalidator:
    """
    Entity-change to cache-pattern router.

    Responsibility: Rule lookup, template expansion and best-effort
    application of the resulting patterns through the facade.

    Usage:
        invalidator = DomainInvalidator(cache)
        invalidator.register("supplier", "suppliers:*", "purchase-invoices:*")

        report = await invalidator.on_entity_changed("invoice", {"shopId": 3})
    """

    def __init__(self, cache: CacheFacade, rules: Mapping[str, tuple[str, ...]] | None = None):
        """
        Args:
            cache: Facade the patterns are applied to
            rules: Entity type -> templates (defaults to DEFAULT_RULES)
        """
        self._cache = cache
        source = DEFAULT_RULES if rules is None else rules
        self._rules: dict[str, list[str]] = {
            self._normalize(entity): list(templates) for entity, templates in source.items()
        }

    @staticmethod
    def _normalize(entity_type: str) -> str:
        return entity_type.strip().lower().replace("_", "-")

    @property
    def entity_types(self) -> list[str]:
        return sorted(self._rules)

    def templates_for(self, entity_type: str) -> list[str]:
        return list(self._rules.get(self._normalize(entity_type), ()))

    def register(self, entity_type: str, *templates: str) -> None:
        """
        Add templates for an entity type. Intended for startup wiring.

        Templates already registered for the type are not duplicated.
        """
        rules = self._rules.setdefault(self._normalize(entity_type), [])
        for template in templates:
            if template not in rules:
                rules.append(template)

    async def on_entity_changed(
        self, entity_type: str, scope: Mapping[str, Any] | None = None
    ) -> InvalidationReport:
        """
        Invalidate every pattern registered for ``entity_type``.

        STAGE-3.0: Domain invalidation

        Args:
            entity_type: e.g. "product", "invoice", "purchase-invoice"
            scope: Values for template placeholders, e.g. {"userId": 42}

        Returns:
            InvalidationReport; failures are reported, never raised
        """
        normalized = self._normalize(entity_type)
        report = InvalidationReport(entity_type=normalized)

        templates = self._rules.get(normalized)
        if not templates:
            log_stage(
                logger,
                Stage.DOMAIN_INVALIDATION,
                "No invalidation rules for entity type",
                level="error",
                entity_type=normalized,
            )
            return report

        for template in templates:
            pattern = expand_template(template, scope)
            report.patterns.append(pattern)
            namespace = entry_namespace(pattern)

            try:
                result = await self._cache.try_invalidate_pattern(pattern)
            except Exception as exc:
                self._record_failure(report, pattern, namespace, exc)
                continue

            report.removed += result.value
            if result.error is not None:
                self._record_failure(report, pattern, namespace, result.error)

        log_stage(
            logger,
            Stage.DOMAIN_INVALIDATION,
            "Entity change invalidated",
            entity_type=normalized,
            patterns=report.patterns,
            removed=report.removed,
            failed=len(report.failures),
        )
        return report

    def _record_failure(
        self, report: InvalidationReport, pattern: str, namespace: str, exc: Exception
    ) -> None:
        report.failures.append(
            {"pattern": pattern, "namespace": namespace, "error": str(exc), "error_type": type(exc).__name__}
        )
        self._cache.metrics.record_error(namespace, ErrorKind.INVALIDATION)
        log_stage(
            logger,
            Stage.DOMAIN_INVALIDATION,
            "Cache invalidation failed",
            level="error",
            entity_type=report.entity_type,
            pattern=pattern,
            namespace=namespace,
            error=str(exc),
            error_type=type(exc).__name__,
        )

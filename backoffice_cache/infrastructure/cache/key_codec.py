"""
Cache Key Codec

Turns a base name plus a parameter map into a canonical cache key.

    encode("invoices", {"status": "paid", "page": 1, "shopId": None})
        -> "invoices:page:!i1:status:paid"

Rules:
- Parameters are sorted by name; ``None`` values are omitted.
- Names and string values are percent-encoded with no safe characters, so the
  separator, the wildcard characters, ``%`` and ``!`` never appear raw.
- Non-string values carry a ``!`` type tag, so ``1`` and ``"1"`` differ.

STAGE-1: Key encoding
"""

from typing import Any
from urllib.parse import quote

import orjson

from backoffice_cache.core.config.constants import (
    KEY_SEPARATOR,
    REDIS_GLOB_SPECIAL,
    TAG_BOOL,
    TAG_FLOAT,
    TAG_INT,
    TAG_JSON,
    TAG_OBJECT,
    TYPE_TAG,
    WILDCARD,
)
from backoffice_cache.core.exceptions import InvalidCachePatternError


def _quote(text: str) -> str:
    return quote(text, safe="")


def _json_default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    return str(value)


class KeyCodec:
    """
    Canonical, collision-free cache key encoding.

    Responsibility: Build keys and validate invalidation patterns

    All methods are static; the class exists to group them.
    """

    @staticmethod
    def encode_value(value: Any) -> str:
        """
        Encode a single parameter value.

        Never raises: values that cannot be represented otherwise fall back
        to their type name plus ``str()`` (or ``object.__repr__``).
        """
        if isinstance(value, str):
            return _quote(value)
        # bool before int: bool is an int subclass
        if isinstance(value, bool):
            return f"{TYPE_TAG}{TAG_BOOL}{'true' if value else 'false'}"
        if isinstance(value, int):
            return f"{TYPE_TAG}{TAG_INT}{value}"
        if isinstance(value, float):
            return f"{TYPE_TAG}{TAG_FLOAT}{_quote(repr(value))}"
        if isinstance(value, (list, tuple, dict, set, frozenset)):
            if isinstance(value, (set, frozenset)):
                value = sorted(value, key=repr)
            try:
                dumped = orjson.dumps(
                    value, option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS, default=_json_default
                ).decode()
            except (TypeError, orjson.JSONEncodeError):
                dumped = repr(value)
            return f"{TYPE_TAG}{TAG_JSON}{_quote(dumped)}"
        try:
            text = str(value)
        except Exception:
            text = object.__repr__(value)
        return f"{TYPE_TAG}{TAG_OBJECT}{_quote(type(value).__name__)}.{_quote(text)}"

    @staticmethod
    def encode(base_name: str, params: dict[str, Any] | None = None) -> str:
        """
        Build the canonical key for ``base_name`` and ``params``.

        Args:
            base_name: Resource family, also the key's namespace
            params: Query parameters; ``None`` values are dropped

        Returns:
            ``base_name`` alone when no parameters remain
        """
        parts = [base_name]
        for name in sorted((params or {}).keys(), key=str):
            value = params[name]
            if value is None:
                continue
            parts.append(_quote(str(name)))
            parts.append(KeyCodec.encode_value(value))
        return KEY_SEPARATOR.join(parts)

    @staticmethod
    def namespace_of(key: str) -> str:
        """Namespace of a key: the text before the first separator."""
        return key.split(KEY_SEPARATOR, 1)[0]

    @staticmethod
    def parse_pattern(pattern: str) -> tuple[str, bool]:
        """
        Validate an invalidation pattern.

        Returns:
            ``(prefix, True)`` for ``prefix*`` or ``(key, False)`` for an exact key

        Raises:
            InvalidCachePatternError: For an empty pattern or a wildcard
                anywhere but the very end
        """
        if not pattern:
            raise InvalidCachePatternError("Empty invalidation pattern", details={"pattern": pattern})

        if pattern.endswith(WILDCARD):
            prefix = pattern[: -len(WILDCARD)]
            is_prefix = True
        else:
            prefix = pattern
            is_prefix = False

        if WILDCARD in prefix:
            raise InvalidCachePatternError(
                "Only a single trailing wildcard is supported",
                details={"pattern": pattern},
            )
        return prefix, is_prefix

    @staticmethod
    def matches(key: str, prefix: str, is_prefix: bool) -> bool:
        """
        Whether ``key`` is covered by a parsed pattern.

        A prefix ending in the separator also covers the bare root key, so
        ``invoices:*`` removes the unparameterised ``invoices`` entry.
        """
        if not is_prefix:
            return key == prefix
        if key.startswith(prefix):
            return True
        return prefix.endswith(KEY_SEPARATOR) and key == prefix[: -len(KEY_SEPARATOR)]

    @staticmethod
    def escape_glob(text: str) -> str:
        """Escape Redis glob metacharacters in a literal prefix."""
        return "".join(f"\\{ch}" if ch in REDIS_GLOB_SPECIAL else ch for ch in text)

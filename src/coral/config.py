"""
Resolver configuration.

Options are plain values passed explicitly to ``ReferenceResolver.for_package``.
There is no module-level or global configuration: two resolvers with
different options can work over the same package side by side.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping

DEFAULT_TOKEN_CONTEXT = "light"


@dataclass(frozen=True)
class ResolverOptions:
    """
    Properties:
        token_context: Context chosen for contextual tokens ("light", "dark", ...)
        asset_base_path: Prefix for resolved asset paths
    """

    token_context: str = DEFAULT_TOKEN_CONTEXT
    asset_base_path: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> ResolverOptions:
        """Build options from a mapping, accepting snake_case or camelCase keys."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = _snake_case(key)
            if name not in known:
                raise ValueError(f"Unknown resolver option: {key}")
            kwargs[name] = value
        return cls(**kwargs)


def _snake_case(key: str) -> str:
    out = []
    for ch in key:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)

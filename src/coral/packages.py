"""
Package assembly: merging extended packages and normalizing component names.

A package may extend other packages. The merged result is built ONCE,
before any resolution pass, and is read-only afterwards:

    - local definitions always win over extended ones
    - among extended packages, the later-listed one wins

Reading extended packages from disk or a registry is the loader's job.
``resolve_extends`` only asks a caller-supplied callable for them.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from coral.model import ComponentDef, Package, PackageError

logger = logging.getLogger(__name__)

_COMPONENT_FILE_RE = re.compile(r"([^/]+)\.coral\.json$")
_WORD_SPLIT_RE = re.compile(r"[-_\s]+")


def to_pascal_case(text: str) -> str:
    """icon-button / icon_button -> IconButton"""
    return "".join(part[:1].upper() + part[1:] for part in _WORD_SPLIT_RE.split(text) if part)


def to_kebab_case(text: str) -> str:
    """IconButton -> icon-button"""
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1-\2", text)
    return _WORD_SPLIT_RE.sub("-", text).lower()


def extract_component_name(ref: str) -> str:
    """
    Normalize an instance reference to a component name.

    Examples:
        extract_component_name("./icon-button/icon-button.coral.json")  # "IconButton"
        extract_component_name("Button")                                # "Button"
    """
    match = _COMPONENT_FILE_RE.search(ref)
    if match:
        return to_pascal_case(match.group(1))
    return ref


def parse_package_ref(ref: str) -> Tuple[str, Optional[str]]:
    """
    Split a package reference into name and version constraint.

    Examples:
        parse_package_ref("@acme/tokens@^1.0.0")  # ("@acme/tokens", "^1.0.0")
        parse_package_ref("@acme/tokens")         # ("@acme/tokens", None)
        parse_package_ref("tokens@2")             # ("tokens", "2")
    """
    at = ref.rfind("@")
    if at <= 0:
        return ref, None
    return ref[:at], ref[at + 1:] or None


def _check_package(package: Any, role: str) -> None:
    if not isinstance(package, Package):
        raise PackageError(f"{role} package must be a Package, got {type(package).__name__}")
    if not package.name:
        raise PackageError(f"{role} package has no name")
    if not isinstance(package.components, Mapping):
        raise PackageError(f"Package {package.name!r}: components must be a mapping")
    if not isinstance(package.tokens, Mapping):
        raise PackageError(f"Package {package.name!r}: tokens must be a mapping")
    for name, component in package.components.items():
        if not isinstance(component, ComponentDef):
            raise PackageError(f"Package {package.name!r}: component {name!r} is not a ComponentDef")
        if not name:
            raise PackageError(f"Package {package.name!r}: component with empty name")


def _is_token_leaf(value: Any) -> bool:
    return isinstance(value, Mapping) and ("$value" in value or "$contexts" in value)


def merge_token_tables(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Deep-merge two token tables.

    Groups are merged key by key; a token leaf (or any non-group value) in
    ``override`` replaces the one in ``base`` as a whole.
    """
    merged: Dict[str, Any] = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if (
            isinstance(current, Mapping)
            and isinstance(value, Mapping)
            and not _is_token_leaf(current)
            and not _is_token_leaf(value)
        ):
            merged[key] = merge_token_tables(current, value)
        else:
            merged[key] = value
    return merged


def merge_packages(extended: Sequence[Package], local: Package) -> Package:
    """
    Merge extended packages under a local package.

    Args:
        extended: Extended packages in declaration order (later wins)
        local: The package being built (always wins)

    Returns:
        A new Package; inputs are not modified

    Raises:
        PackageError: If any input is malformed
    """
    _check_package(local, "Local")
    for package in extended:
        _check_package(package, "Extended")

    components: Dict[str, ComponentDef] = {}
    tokens: Dict[str, Any] = {}
    for package in list(extended) + [local]:
        for name, component in package.components.items():
            if name in components:
                logger.debug("Component %s from %s overrides an extended definition", name, package.name)
            components[name] = component
        tokens = merge_token_tables(tokens, package.tokens)

    return Package(
        name=local.name,
        version=local.version,
        components=components,
        tokens=tokens,
        extends=list(local.extends),
        description=local.description,
    )


_OPTIONAL_LOAD_ERRORS = (LookupError, OSError, PackageError)


def resolve_extends(
    local: Package,
    load_extended: Callable[[str], Optional[Package]],
    _visiting: Optional[List[str]] = None,
) -> Package:
    """
    Load and merge everything ``local.extends`` names, recursively.

    ``load_extended`` receives the package name (version constraint
    stripped). Extended packages are optional: if loading fails with
    LookupError, OSError or PackageError, or returns None, the package is
    treated as absent and a warning is logged. An extension cycle is
    skipped the same way.
    """
    _check_package(local, "Local")
    visiting = (_visiting or []) + [local.name]

    extended: List[Package] = []
    for ref in local.extends:
        name, _version = parse_package_ref(ref)
        if name in visiting:
            logger.warning("Skipping circular package extension %s", " -> ".join(visiting + [name]))
            continue
        try:
            loaded = load_extended(name)
            if loaded is None:
                logger.warning("Extended package %s not found", name)
                continue
            extended.append(resolve_extends(loaded, load_extended, visiting))
        except _OPTIONAL_LOAD_ERRORS as exc:
            logger.warning("Extended package %s could not be loaded: %s", name, exc)

    return merge_packages(extended, local)

"""
Reference Resolver — turns references into concrete values.

Responsibilities:
    - Flatten the token table once into dot-path keys (``TokenTable``)
    - Resolve token, prop, asset and external references
    - Apply prop transforms and computed-value combinators
    - Walk arbitrary nested values (``resolve_value``)
    - Build event handlers from event bindings
    - Evaluate conditional expressions

Resolution is TOTAL: a missing token yields its fallback or the
``UNRESOLVED`` sentinel and a warning, never an exception. Turning
unresolved tokens into errors is the validator's job.

The token context (light/dark/...) is always passed explicitly, either as
a resolver option or per call. Nothing here reads global state.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from coral.config import ResolverOptions
from coral.diagnostics import Diagnostic, DiagnosticKind, warning
from coral.model import Package
from coral.references import (
    AssetRef,
    ComparisonCondition,
    ComparisonOperator,
    ComputedKind,
    ComputedValue,
    EventRef,
    ExternalRef,
    HandlerKind,
    InlineHandler,
    LogicalCondition,
    LogicalOperator,
    NotCondition,
    PropRef,
    PropTransform,
    Reference,
    SlotForward,
    TokenRef,
    TransformKind,
)

logger = logging.getLogger(__name__)

_ALIAS_RE = re.compile(r"^\{([^{}]+)\}$")
_PLACEHOLDER_RE = re.compile(r"\{(\d+)\}")


class _Unresolved:
    """Sentinel for a token that could not be resolved. Falsy."""

    _instance: Optional[_Unresolved] = None

    def __new__(cls) -> _Unresolved:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNRESOLVED"


UNRESOLVED = _Unresolved()


# =============================================================================
# Token table
# =============================================================================


@dataclass(frozen=True)
class ContextualValue:
    """A token value that differs per context, e.g. light/dark."""

    contexts: Mapping[str, Any]
    default: Optional[str] = None

    def select(self, context: Optional[str]) -> Any:
        """Requested context, then the declared default, then the first context."""
        if context is not None and context in self.contexts:
            return self.contexts[context]
        if self.default is not None and self.default in self.contexts:
            return self.contexts[self.default]
        for value in self.contexts.values():
            return value
        return UNRESOLVED


def _token_value(raw: Any) -> Any:
    if isinstance(raw, Mapping) and "$contexts" in raw:
        return ContextualValue(contexts=dict(raw["$contexts"] or {}), default=raw.get("$default"))
    return raw


def flatten_tokens(tokens: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Flatten a nested token table into ``{"color.primary": value}``.

    Keys starting with ``$`` are metadata and skipped. A mapping holding
    ``$value`` is a token; a mapping holding ``$contexts`` directly is a
    contextual token. Any other mapping is a group and is descended into.
    """
    result: Dict[str, Any] = {}
    _flatten_into(tokens, "", result)
    return result


def _flatten_into(data: Mapping[str, Any], prefix: str, result: Dict[str, Any]) -> None:
    for key, value in data.items():
        if key.startswith("$"):
            continue
        path = f"{prefix}.{key}" if prefix else key
        if not isinstance(value, Mapping):
            continue
        if "$value" in value:
            result[path] = _token_value(value["$value"])
        elif "$contexts" in value:
            result[path] = _token_value(value)
        else:
            _flatten_into(value, path, result)


class TokenTable:
    """
    Flattened, read-only view of a package's tokens.

    Built once per package; lookups never mutate it, so one table can be
    shared by any number of resolvers.
    """

    def __init__(self, values: Mapping[str, Any]):
        self._values = dict(values)

    @classmethod
    def from_tokens(cls, tokens: Mapping[str, Any]) -> TokenTable:
        return cls(flatten_tokens(tokens))

    def __contains__(self, path: str) -> bool:
        return path in self._values

    def __len__(self) -> int:
        return len(self._values)

    def paths(self) -> List[str]:
        return list(self._values)

    def lookup(self, path: str, context: Optional[str] = None) -> Any:
        """
        Value of ``path`` in ``context``, following ``"{other.path}"`` aliases.

        Returns UNRESOLVED if the path is absent or an alias chain loops.
        An alias to an unknown path is returned as the raw string.
        """
        seen = set()
        while True:
            if path in seen:
                logger.warning("Token alias loop at %s", path)
                return UNRESOLVED
            seen.add(path)
            if path not in self._values:
                return UNRESOLVED
            value = self._values[path]
            if isinstance(value, ContextualValue):
                value = value.select(context)
            target = _alias_target(value)
            if target is None or target not in self._values:
                return value
            path = target


def _alias_target(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    match = _ALIAS_RE.match(value)
    return match.group(1) if match else None


# =============================================================================
# Resolver
# =============================================================================


class ReferenceResolver:
    """
    Resolves references against one package's tokens and assets.

    Example:
        resolver = ReferenceResolver.for_package(pkg, ResolverOptions(token_context="dark"))
        resolver.resolve_token(TokenRef("color.primary"))      # "#3385ff"
        resolver.resolve_prop(PropRef("label"), {"label": "OK"})  # "OK"
    """

    def __init__(self, tokens: TokenTable, options: Optional[ResolverOptions] = None):
        self.tokens = tokens
        self.options = options or ResolverOptions()

    @classmethod
    def for_package(cls, package: Package, options: Optional[ResolverOptions] = None) -> ReferenceResolver:
        return cls(TokenTable.from_tokens(package.tokens), options)

    @property
    def token_context(self) -> str:
        return self.options.token_context

    def resolve_token(
        self,
        ref: TokenRef,
        context: Optional[str] = None,
        diagnostics: Optional[List[Diagnostic]] = None,
    ) -> Any:
        value = self.tokens.lookup(ref.path, context or self.options.token_context)
        if value is not UNRESOLVED:
            return value
        if ref.fallback is not None:
            return ref.fallback
        logger.warning("Token not found: %s", ref.path)
        if diagnostics is not None:
            diagnostics.append(
                warning(
                    DiagnosticKind.UNRESOLVED_TOKEN,
                    path=ref.path,
                    reference=ref.path,
                    message=f'Token "{ref.path}" not found',
                )
            )
        return UNRESOLVED

    def resolve_prop(self, ref: PropRef, props: Mapping[str, Any]) -> Any:
        return props.get(ref.name)

    def resolve_asset(self, ref: AssetRef) -> str:
        base = self.options.asset_base_path.rstrip("/")
        return f"{base}/assets/{ref.path}" if base else f"assets/{ref.path}"

    def resolve_external(self, ref: ExternalRef) -> str:
        return f"{ref.package}/{ref.path.lstrip('/')}"


# =============================================================================
# Transforms and computed values
# =============================================================================


def to_text(value: Any) -> str:
    """Stringify a resolved value: None -> "", booleans as true/false, 2.0 -> "2"."""
    if value is None or value is UNRESOLVED:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_number(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if value is None:
        return 0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def apply_transform(value: Any, kind: TransformKind | str) -> Any:
    """
    Apply a prop transform.

    Examples:
        apply_transform(False, TransformKind.NOT)      # True
        apply_transform("42", "number")                # 42
        apply_transform(None, TransformKind.STRING)    # ""
    """
    kind = TransformKind(kind)
    if kind is TransformKind.BOOLEAN:
        return bool(value)
    if kind is TransformKind.STRING:
        return to_text(value)
    if kind is TransformKind.NUMBER:
        return _to_number(value)
    if kind is TransformKind.NOT:
        return not value
    if kind is TransformKind.UPPERCASE:
        return to_text(value).upper()
    if kind is TransformKind.LOWERCASE:
        return to_text(value).lower()
    raise ValueError(f"Unsupported transform: {kind}")


def resolve_computed(computed: ComputedValue, resolve_input: Callable[[Any], Any]) -> Any:
    """
    Combine the resolved inputs of a computed value.

    ``resolve_input`` is applied to every input first, so inputs may be
    references of any kind (including nested computed values).
    """
    inputs = [resolve_input(item) for item in computed.inputs]
    kind = computed.kind

    if kind is ComputedKind.CONCAT:
        return "".join(to_text(v) for v in inputs)

    if kind is ComputedKind.TEMPLATE:
        if not inputs:
            return ""
        template, values = inputs[0], inputs[1:]

        def fill(match: re.Match) -> str:
            index = int(match.group(1))
            return to_text(values[index]) if index < len(values) else ""

        return _PLACEHOLDER_RE.sub(fill, to_text(template))

    if kind is ComputedKind.TERNARY:
        condition, when_true, when_false = (inputs + [None, None, None])[:3]
        return when_true if condition else when_false

    if kind is ComputedKind.CLASSNAMES:
        return " ".join(to_text(v) for v in inputs if v)

    raise ValueError(f"Unsupported computed kind: {kind}")


# =============================================================================
# Value walking
# =============================================================================


def resolve_value(
    value: Any,
    resolver: ReferenceResolver,
    props: Mapping[str, Any],
    context: Optional[str] = None,
    diagnostics: Optional[List[Diagnostic]] = None,
) -> Any:
    """
    Resolve every reference inside ``value``.

    Scalars are returned unchanged; dicts, lists and tuples are rebuilt
    with their items resolved. Event bindings and slot forwards are left in
    place: they only have meaning at runtime or inside slot bindings.
    """
    if isinstance(value, Reference):
        return _resolve_reference(value, resolver, props, context, diagnostics)
    if isinstance(value, Mapping):
        return {k: resolve_value(v, resolver, props, context, diagnostics) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_value(v, resolver, props, context, diagnostics) for v in value]
    if isinstance(value, tuple):
        return tuple(resolve_value(v, resolver, props, context, diagnostics) for v in value)
    return value


def _resolve_reference(
    ref: Reference,
    resolver: ReferenceResolver,
    props: Mapping[str, Any],
    context: Optional[str],
    diagnostics: Optional[List[Diagnostic]],
) -> Any:
    if isinstance(ref, TokenRef):
        return resolver.resolve_token(ref, context, diagnostics)
    if isinstance(ref, PropRef):
        return resolver.resolve_prop(ref, props)
    if isinstance(ref, PropTransform):
        return apply_transform(props.get(ref.name), ref.kind)
    if isinstance(ref, ComputedValue):
        return resolve_computed(ref, lambda item: resolve_value(item, resolver, props, context, diagnostics))
    if isinstance(ref, AssetRef):
        return resolver.resolve_asset(ref)
    if isinstance(ref, ExternalRef):
        return resolver.resolve_external(ref)
    if isinstance(ref, (EventRef, InlineHandler, SlotForward)):
        return ref
    raise TypeError(f"Unsupported Reference type: {type(ref)}")


def resolve_all_prop_bindings(
    bindings: Mapping[str, Any],
    resolver: ReferenceResolver,
    parent_props: Mapping[str, Any],
    diagnostics: Optional[List[Diagnostic]] = None,
) -> Dict[str, Any]:
    return {name: resolve_value(binding, resolver, parent_props, diagnostics=diagnostics) for name, binding in bindings.items()}


def iter_references(value: Any) -> Iterator[Reference]:
    """
    Yield every reference in ``value``, depth first.

    Descends into dicts, lists, tuples, computed-value inputs and
    conditions. Nodes are not descended into.
    """
    if isinstance(value, Reference):
        yield value
        if isinstance(value, ComputedValue):
            for item in value.inputs:
                yield from iter_references(item)
    elif isinstance(value, NotCondition):
        yield from iter_references(value.operand)
    elif isinstance(value, LogicalCondition):
        for operand in value.operands:
            yield from iter_references(operand)
    elif isinstance(value, ComparisonCondition):
        yield from iter_references(value.left)
    elif isinstance(value, Mapping):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from iter_references(item)


def collect_token_references(value: Any) -> List[str]:
    return [ref.path for ref in iter_references(value) if isinstance(ref, TokenRef)]


def collect_prop_references(value: Any) -> List[str]:
    names: Dict[str, None] = {}
    for ref in iter_references(value):
        if isinstance(ref, (PropRef, PropTransform)):
            names[ref.name] = None
    return list(names)


# =============================================================================
# Events
# =============================================================================


def extract_value(obj: Any, path: str) -> Any:
    """Follow a dot path through mappings and attributes; None when it breaks."""
    current = obj
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        else:
            current = getattr(current, part, None)
    return current


def resolve_event_binding(
    binding: Reference,
    parent_events: Mapping[str, Callable[..., Any]],
    parent_props: Mapping[str, Any],
    set_parent_prop: Callable[[str, Any], None],
) -> Optional[Callable[..., None]]:
    """
    Build the handler an element should call for ``binding``.

    Returns None when the binding forwards to a parent event that was not
    supplied.
    """
    if isinstance(binding, EventRef):
        handler = parent_events.get(binding.name)
        if handler is None:
            return None

        def forward(*args: Any) -> None:
            final_args = list(args)
            if binding.extract_path and final_args and final_args[0]:
                final_args[0] = extract_value(final_args[0], binding.extract_path)
            final_args.extend(binding.extra_args)
            handler(*final_args)

        return forward

    if isinstance(binding, InlineHandler):
        if binding.kind is HandlerKind.PREVENT_DEFAULT:
            return _call_event_method("preventDefault")
        if binding.kind is HandlerKind.STOP_PROPAGATION:
            return _call_event_method("stopPropagation")
        if binding.kind is HandlerKind.TOGGLE:

            def toggle(*_: Any) -> None:
                if binding.target:
                    set_parent_prop(binding.target, not parent_props.get(binding.target))

            return toggle
        if binding.kind is HandlerKind.SET:

            def assign(*_: Any) -> None:
                if binding.target:
                    set_parent_prop(binding.target, binding.value)

            return assign

    raise TypeError(f"Unsupported event binding: {type(binding)}")


def _call_event_method(method_name: str) -> Callable[..., None]:
    def handler(event: Any = None, *_: Any) -> None:
        method = getattr(event, method_name, None)
        if callable(method):
            method()

    return handler


def resolve_all_event_bindings(
    bindings: Mapping[str, Reference],
    parent_events: Mapping[str, Callable[..., Any]],
    parent_props: Mapping[str, Any],
    set_parent_prop: Callable[[str, Any], None],
) -> Dict[str, Callable[..., None]]:
    resolved = {}
    for name, binding in bindings.items():
        handler = resolve_event_binding(binding, parent_events, parent_props, set_parent_prop)
        if handler is not None:
            resolved[name] = handler
    return resolved


# =============================================================================
# Conditions
# =============================================================================


def evaluate_condition(condition: Any, props: Mapping[str, Any]) -> bool:
    """
    Evaluate a conditional expression against prop values.

    Example:
        evaluate_condition(
            ComparisonCondition(ComparisonOperator.EQUALS, PropRef("size"), "lg"),
            {"size": "lg"},
        )  # True
    """
    if isinstance(condition, PropRef):
        return bool(props.get(condition.name))
    if isinstance(condition, NotCondition):
        return not evaluate_condition(condition.operand, props)
    if isinstance(condition, LogicalCondition):
        results = (evaluate_condition(operand, props) for operand in condition.operands)
        if condition.operator is LogicalOperator.AND:
            return all(results)
        return any(results)
    if isinstance(condition, ComparisonCondition):
        if isinstance(condition.left, PropRef):
            left = props.get(condition.left.name)
        else:
            left = evaluate_condition(condition.left, props)
        if condition.operator is ComparisonOperator.EQUALS:
            return left == condition.right
        return left != condition.right
    raise TypeError(f"Unsupported condition type: {type(condition)}")

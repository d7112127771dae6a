"""Attribute algorithm registry and evaluator.

Algorithms are small rule expressions of the form ``name(arg, ...)``:
quoted arguments are literals, bare numbers are numeric literals, anything
else is an attribute path on the source record. A bare path on its own is
shorthand for ``copy(path)``. Dotted paths (``parent.name``) follow
reference attributes through the schema store, at most ``depth`` hops.

``ref(path)`` is special: it resolves the value against the dataset the
*target* attribute references and yields the id only if that record
exists. Forward references to rows not yet written therefore come out as
None on the first pass over a self-referencing target and resolve on the
second.
"""

from __future__ import annotations

import functools
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from semmap.errors import SemmapError, TransformError
from semmap.mapping.cache import ReferenceCache
from semmap.models.mapping import AttributeMapping
from semmap.models.record import Record
from semmap.models.schema import Attribute, Schema
from semmap.storage.base import SchemaStore

_CALL_RE = re.compile(r"^\s*([A-Za-z_]\w*)\s*\((.*)\)\s*$", re.DOTALL)
_PATH_RE = re.compile(r"^[A-Za-z_][\w-]*(\.[A-Za-z_][\w-]*)*$")
_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")
_TRUE_STRINGS = frozenset({"true", "t", "yes", "y", "1"})
_FALSE_STRINGS = frozenset({"false", "f", "no", "n", "0"})


def _copy(value: Any) -> Any:
    return value


def _concat(*values: Any) -> str | None:
    parts = [str(v) for v in values if v is not None]
    return "".join(parts) if parts else None


def _upper(value: Any) -> str | None:
    return None if value is None else str(value).upper()


def _lower(value: Any) -> str | None:
    return None if value is None else str(value).lower()


def _to_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"{value!r} is not a whole number")
        return int(value)
    return int(str(value).strip())


def _to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def _to_bool(value: Any) -> bool | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ValueError(f"{value!r} is not a boolean")


AVAILABLE_RULES: dict[str, Callable[..., Any]] = {
    # plain values
    "copy": _copy,
    "constant": _copy,
    # text
    "concat": _concat,
    "upper": _upper,
    "lower": _lower,
    # type conversion
    "to_int": _to_int,
    "to_float": _to_float,
    "to_bool": _to_bool,
}

# Rules evaluated by the evaluator itself because they need lookups.
_LOOKUP_RULES = frozenset({"ref"})

_ARITY: dict[str, int | None] = {
    "copy": 1,
    "constant": 1,
    "concat": None,
    "upper": 1,
    "lower": 1,
    "to_int": 1,
    "to_float": 1,
    "to_bool": 1,
    "ref": 1,
}


def get_rule(name: str) -> Callable[..., Any] | None:
    """Look up a plain rule function by name (lookup rules return None)."""
    return AVAILABLE_RULES.get(name)


def list_rules() -> list[str]:
    """Return names of all rules, including lookup rules, sorted."""
    return sorted(set(AVAILABLE_RULES) | _LOOKUP_RULES)


@dataclass(frozen=True, slots=True)
class Literal:
    value: Any


@dataclass(frozen=True, slots=True)
class Path:
    path: str

    @property
    def hops(self) -> int:
        return self.path.count(".")


Argument = Literal | Path


@dataclass(frozen=True, slots=True)
class ParsedRule:
    name: str
    args: tuple[Argument, ...]


@functools.lru_cache(maxsize=1024)
def parse_rule(algorithm: str) -> ParsedRule | None:
    """Parse an algorithm string. Blank algorithms parse to None.

    Raises:
        ValueError: If the algorithm is not a valid rule expression.
    """
    text = algorithm.strip()
    if not text:
        return None
    match = _CALL_RE.match(text)
    if match is None:
        return ParsedRule("copy", (_parse_argument(text),))

    name, arg_text = match.group(1), match.group(2)
    if name not in AVAILABLE_RULES and name not in _LOOKUP_RULES:
        raise ValueError(f"unknown rule '{name}'")
    args = tuple(_parse_argument(token) for token in _split_arguments(arg_text))
    arity = _ARITY.get(name)
    if arity is not None and len(args) != arity:
        raise ValueError(f"rule '{name}' takes {arity} argument(s), got {len(args)}")
    return ParsedRule(name, args)


def _split_arguments(text: str) -> list[str]:
    tokens: list[str] = []
    current: list[str] = []
    quote: str | None = None
    escaped = False
    for char in text:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\" and quote is not None:
            current.append(char)
            escaped = True
        elif quote is not None:
            current.append(char)
            if char == quote:
                quote = None
        elif char in "'\"":
            current.append(char)
            quote = char
        elif char == ",":
            tokens.append("".join(current))
            current = []
        else:
            current.append(char)
    if quote is not None:
        raise ValueError(f"unterminated string in '{text}'")
    tail = "".join(current)
    if tokens or tail.strip():
        tokens.append(tail)
    return tokens


def _parse_argument(token: str) -> Argument:
    token = token.strip()
    if not token:
        raise ValueError("empty argument")
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "'\"":
        body = token[1:-1]
        return Literal(re.sub(r"\\(.)", r"\1", body))
    if _NUMBER_RE.match(token):
        return Literal(float(token) if "." in token else int(token))
    if not _PATH_RE.match(token):
        raise ValueError(f"invalid argument '{token}'")
    return Path(token)


class AlgorithmEvaluator:
    """Computes target attribute values from source records.

    Usage::

        evaluator = AlgorithmEvaluator(store)
        value = evaluator.apply(mapping, source_record, source_schema, depth=3)
    """

    def __init__(self, schema_store: SchemaStore, cache: ReferenceCache | None = None) -> None:
        self._schemas = schema_store
        self._cache = cache if cache is not None else ReferenceCache(schema_store)

    @property
    def cache(self) -> ReferenceCache:
        return self._cache

    def apply(
        self,
        attribute_mapping: AttributeMapping,
        source: Record,
        source_schema: Schema,
        depth: int,
        *,
        target_attribute: Attribute | None = None,
    ) -> Any:
        """Evaluate ``attribute_mapping`` against one source record.

        Args:
            attribute_mapping: Mapping whose algorithm is evaluated.
            source: The source record.
            source_schema: Schema of the source record, used to follow references.
            depth: Maximum number of reference hops a path may take.
            target_attribute: Target attribute definition; required by ``ref``.

        Returns:
            The computed value (None for blank algorithms).

        Raises:
            TransformError: If the algorithm is invalid or cannot be evaluated.
        """
        try:
            rule = parse_rule(attribute_mapping.algorithm)
            if rule is None:
                return None
            values = [self._resolve(arg, source, source_schema, depth) for arg in rule.args]
            if rule.name == "ref":
                return self._ref(values[0], target_attribute)
            return AVAILABLE_RULES[rule.name](*values)
        except (SemmapError, ValueError, TypeError, KeyError) as e:
            msg = (
                f"Algorithm '{attribute_mapping.algorithm}' for attribute "
                f"'{attribute_mapping.target_attribute}' failed on {source_schema.id} "
                f"record [{_describe(source)}]: {e}"
            )
            logger.debug(msg)
            raise TransformError(msg) from e

    def _resolve(self, arg: Argument, record: Record, schema: Schema, depth: int) -> Any:
        if isinstance(arg, Literal):
            return arg.value
        if arg.hops > depth:
            raise ValueError(f"path '{arg.path}' needs {arg.hops} reference hop(s), depth is {depth}")

        parts = arg.path.split(".")
        current_record: Record | None = record
        current_schema = schema
        for i, part in enumerate(parts):
            attribute = current_schema.get_attribute(part)
            if attribute is None:
                raise ValueError(f"unknown attribute '{part}' in schema '{current_schema.id}'")
            value = current_record.get(part)  # type: ignore[union-attr]
            if i == len(parts) - 1:
                return value
            if not attribute.is_reference:
                raise ValueError(f"'{part}' in path '{arg.path}' is not a reference")
            if attribute.data_type.is_multiple:
                raise ValueError(f"cannot follow multi-valued reference '{part}'")
            if value is None:
                return None
            current_schema = self._schemas.get_schema(attribute.ref_schema)  # type: ignore[arg-type]
            current_record = self._cache.get(current_schema.id, value)
            if current_record is None:
                return None
        return None

    def _ref(self, value: Any, target_attribute: Attribute | None) -> Any:
        if target_attribute is None or not target_attribute.is_reference:
            name = target_attribute.name if target_attribute is not None else "?"
            raise ValueError(f"ref() needs a reference target attribute, '{name}' is not one")
        if value is None:
            return None
        ref_schema = target_attribute.ref_schema
        if target_attribute.data_type.is_multiple:
            ids = value if isinstance(value, list) else [value]
            return [r.id_value for r in self._cache.get_batch(ref_schema, ids)]  # type: ignore[arg-type]
        record = self._cache.get(ref_schema, value)  # type: ignore[arg-type]
        return record.id_value if record is not None else None


def _describe(record: Record) -> str:
    try:
        return str(record.id_value)
    except ValueError:
        return "?"

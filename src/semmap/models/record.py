"""Schema-indexed records.

A RecordLayout resolves attribute names to positions once per schema; a
Record is a fixed-size list of values addressed through its layout. Hot
loops resolve a position up front with ``layout.position(name)`` and then
use ``set_at``/``get_at`` so no per-record name lookups happen.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from semmap.models.schema import Attribute, AttributeType, Schema

_TRUE_STRINGS = frozenset({"true", "t", "yes", "y", "1"})
_FALSE_STRINGS = frozenset({"false", "f", "no", "n", "0"})


class RecordLayout:
    """Attribute positions for one schema."""

    __slots__ = ("schema_id", "names", "_positions", "_id_position")

    def __init__(self, schema_id: str, names: Iterable[str], id_name: str | None = None) -> None:
        self.schema_id = schema_id
        self.names: tuple[str, ...] = tuple(names)
        self._positions = {name: i for i, name in enumerate(self.names)}
        if len(self._positions) != len(self.names):
            msg = f"Duplicate attribute names in layout for '{schema_id}'"
            raise ValueError(msg)
        self._id_position = self._positions.get(id_name) if id_name is not None else None

    @classmethod
    def for_schema(cls, schema: Schema) -> RecordLayout:
        id_attr = schema.id_attribute
        return cls(
            schema.id,
            (a.name for a in schema.atomic_attributes()),
            id_attr.name if id_attr is not None else None,
        )

    def __len__(self) -> int:
        return len(self.names)

    def __contains__(self, name: object) -> bool:
        return name in self._positions

    def position(self, name: str) -> int:
        try:
            return self._positions[name]
        except KeyError:
            msg = f"Unknown attribute '{name}' for schema '{self.schema_id}'"
            raise KeyError(msg) from None

    @property
    def id_position(self) -> int | None:
        return self._id_position

    @property
    def id_name(self) -> str | None:
        if self._id_position is None:
            return None
        return self.names[self._id_position]

    def matches(self, schema: Schema) -> bool:
        return self.names == tuple(a.name for a in schema.atomic_attributes())


class Record:
    """A record whose values are stored by attribute position."""

    __slots__ = ("layout", "_values")

    def __init__(self, layout: RecordLayout, values: Iterable[Any] | None = None) -> None:
        self.layout = layout
        if values is None:
            self._values: list[Any] = [None] * len(layout)
        else:
            self._values = list(values)
            if len(self._values) != len(layout):
                msg = (
                    f"Record for '{layout.schema_id}' needs {len(layout)} values, "
                    f"got {len(self._values)}"
                )
                raise ValueError(msg)

    @classmethod
    def from_mapping(cls, layout: RecordLayout, data: Mapping[str, Any]) -> Record:
        record = cls(layout)
        for name, value in data.items():
            record.set(name, value)
        return record

    def get(self, name: str) -> Any:
        return self._values[self.layout.position(name)]

    def set(self, name: str, value: Any) -> None:
        self._values[self.layout.position(name)] = value

    def get_at(self, position: int) -> Any:
        return self._values[position]

    def set_at(self, position: int, value: Any) -> None:
        self._values[position] = value

    @property
    def id_value(self) -> Any:
        position = self.layout.id_position
        if position is None:
            msg = f"Schema '{self.layout.schema_id}' has no id attribute"
            raise ValueError(msg)
        return self._values[position]

    def values(self) -> list[Any]:
        return list(self._values)

    def to_dict(self) -> dict[str, Any]:
        return dict(zip(self.layout.names, self._values, strict=True))

    def __getitem__(self, name: str) -> Any:
        return self.get(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self.layout.names == other.layout.names and self._values == other._values

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Record({self.layout.schema_id}, {self.to_dict()!r})"


def convert_value(value: Any, attribute: Attribute) -> Any:
    """Convert a raw (usually textual) value to the attribute's Python type.

    Empty strings and None become None. Multi-valued reference types accept
    a list or a comma-separated string.

    Raises:
        ValueError: If the value cannot be converted.
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return None

    data_type = attribute.data_type
    if data_type.is_multiple:
        items = value.split(",") if isinstance(value, str) else list(value)
        return [item.strip() if isinstance(item, str) else item for item in items]
    if data_type in (AttributeType.INT, AttributeType.LONG):
        if isinstance(value, float) and not value.is_integer():
            msg = f"{attribute.name}: {value!r} is not a whole number"
            raise ValueError(msg)
        return int(value)
    if data_type == AttributeType.DECIMAL:
        return float(value)
    if data_type == AttributeType.BOOL:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        msg = f"{attribute.name}: {value!r} is not a boolean"
        raise ValueError(msg)
    if data_type == AttributeType.DATE:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        return date.fromisoformat(str(value))
    if data_type == AttributeType.DATE_TIME:
        if isinstance(value, datetime):
            return value
        return datetime.fromisoformat(str(value))
    if data_type.is_reference:
        return value
    if isinstance(value, Decimal):
        return str(value)
    return value if isinstance(value, str) else str(value)


class RecordFactory:
    """Creates blank records populated with schema-declared defaults.

    Layouts are cached per schema id and rebuilt when any atomic attribute
    changes name, type, id flag or default value.
    """

    def __init__(self) -> None:
        self._layouts: dict[str, tuple[list[tuple[Any, ...]], RecordLayout, tuple[Any, ...]]] = {}

    def _resolve(self, schema: Schema) -> tuple[RecordLayout, tuple[Any, ...]]:
        signature = [
            (a.name, a.data_type, a.id_attribute, a.default_value)
            for a in schema.atomic_attributes()
        ]
        cached = self._layouts.get(schema.id)
        if cached is None or cached[0] != signature:
            layout = RecordLayout.for_schema(schema)
            defaults = tuple(
                convert_value(a.default_value, a) if a.default_value is not None else None
                for a in schema.atomic_attributes()
            )
            cached = (signature, layout, defaults)
            self._layouts[schema.id] = cached
        return cached[1], cached[2]

    def layout(self, schema: Schema) -> RecordLayout:
        return self._resolve(schema)[0]

    def create(self, schema: Schema) -> Record:
        layout, defaults = self._resolve(schema)
        return Record(layout, (list(v) if isinstance(v, list) else v for v in defaults))

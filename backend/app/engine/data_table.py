"""In-memory tables passed between workflow nodes.

A table is a spec (ordered, typed columns) plus keyed rows of cells.
Tables are built through a DataTableContainer and are read-only once closed.
"""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

COLUMN_TYPES = ("string", "number", "boolean", "date")


@dataclass(frozen=True)
class ColumnSpec:
    name: str
    type: str = "string"

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.type}


@dataclass(frozen=True)
class DataTableSpec:
    columns: tuple[ColumnSpec, ...] = ()

    @classmethod
    def of(cls, *columns: tuple[str, str] | ColumnSpec) -> "DataTableSpec":
        """Build a spec from ColumnSpecs or (name, type) pairs."""
        specs = [c if isinstance(c, ColumnSpec) else ColumnSpec(*c) for c in columns]
        return cls(tuple(specs))

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def find_column_index(self, name: str) -> int:
        """Index of the named column, or -1 when absent."""
        for i, column in enumerate(self.columns):
            if column.name == name:
                return i
        return -1

    def get_column(self, name: str) -> ColumnSpec | None:
        idx = self.find_column_index(name)
        return self.columns[idx] if idx >= 0 else None

    def to_list(self) -> list[dict]:
        return [c.to_dict() for c in self.columns]


@dataclass(frozen=True)
class Cell:
    type: str
    value: Any

    def get_value(self) -> Any:
        return self.value


@dataclass(frozen=True)
class DataRow:
    key: str
    cells: tuple[Cell, ...]

    def get_cell(self, index: int) -> Cell:
        return self.cells[index]


@dataclass(frozen=True)
class DataTable:
    spec: DataTableSpec
    rows: tuple[DataRow, ...] = field(default_factory=tuple)

    @property
    def size(self) -> int:
        return len(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[DataRow]:
        return iter(self.rows)

    def column_values(self, index: int) -> list[Any]:
        return [row.cells[index].value for row in self.rows]

    def to_records(self) -> list[dict[str, Any]]:
        names = self.spec.column_names
        return [
            {names[i]: cell.value for i, cell in enumerate(row.cells)}
            for row in self.rows
        ]

    @classmethod
    def from_records(
        cls,
        spec: DataTableSpec,
        records: Sequence[dict[str, Any]],
        key_prefix: str = "row",
    ) -> "DataTable":
        container = DataTableContainer(spec)
        for i, record in enumerate(records):
            container.add_row(
                f"{key_prefix}-{i}",
                [Cell(c.type, record.get(c.name)) for c in spec.columns],
            )
        return container.close()


class DataTableContainer:
    """Row buffer for a table under construction."""

    def __init__(self, spec: DataTableSpec) -> None:
        self.spec = spec
        self._rows: list[DataRow] = []
        self._closed = False

    @property
    def size(self) -> int:
        return len(self._rows)

    def add_row(self, key: str, cells: Sequence[Cell]) -> None:
        if self._closed:
            raise RuntimeError("Cannot add rows to a closed table")
        if len(cells) != len(self.spec.columns):
            raise ValueError(
                f"Row '{key}' has {len(cells)} cells, expected {len(self.spec.columns)}"
            )
        self._rows.append(DataRow(key, tuple(cells)))

    def close(self) -> DataTable:
        self._closed = True
        return DataTable(self.spec, tuple(self._rows))


def empty_table(spec: DataTableSpec | None = None) -> DataTable:
    return DataTable(spec or DataTableSpec())

"""Joiner node: hash-joins two tables, then optionally a third onto the result.

Output columns are prefixed per source table (T1_, T2_, T3_ by default) and the
right-hand join column is dropped from the output.
"""

from typing import Any

from app.engine.context import ExecutionContext
from app.engine.data_table import Cell, ColumnSpec, DataRow, DataTable, DataTableSpec
from app.engine.node_model import NodeModel
from app.engine.registry import register_node
from app.engine.settings import NodeSettings

JOIN_TYPES = ("INNER", "LEFT", "RIGHT", "FULL")
_DEFAULT_JOIN = {"leftColumn": "", "rightColumn": "", "joinType": "INNER"}


def join_key(value: Any) -> str:
    """String form used to match join values (1 and 1.0 match, as do True and "true")."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _null_cells(columns: tuple[ColumnSpec, ...], skip: int = -1) -> list[Cell]:
    return [Cell(c.type, None) for i, c in enumerate(columns) if i != skip]


def _index(table: DataTable, column_index: int) -> dict[str, list[DataRow]]:
    grouped: dict[str, list[DataRow]] = {}
    for row in table:
        grouped.setdefault(join_key(row.cells[column_index].value), []).append(row)
    return grouped


@register_node("joiner", "Joiner", "Data Manipulation", "Join two or three tables on key columns")
class JoinerNodeModel(NodeModel):
    input_ports = 3
    output_ports = 1

    def __init__(self) -> None:
        super().__init__()
        self.join_1_2 = dict(_DEFAULT_JOIN)
        self.join_1_3 = dict(_DEFAULT_JOIN)
        self.prefixes = ("T1_", "T2_", "T3_")

    def load_settings(self, settings: NodeSettings) -> None:
        self.join_1_2 = {**_DEFAULT_JOIN, **(settings.get_json("join_1_2", {}) or {})}
        self.join_1_3 = {**_DEFAULT_JOIN, **(settings.get_json("join_1_3", {}) or {})}
        self.prefixes = (
            settings.get_string("column_prefix_1", "T1_"),
            settings.get_string("column_prefix_2", "T2_"),
            settings.get_string("column_prefix_3", "T3_"),
        )

    def save_settings(self, settings: NodeSettings) -> None:
        settings.set("join_1_2", dict(self.join_1_2))
        settings.set("join_1_3", dict(self.join_1_3))
        for i, prefix in enumerate(self.prefixes, start=1):
            settings.set(f"column_prefix_{i}", prefix)

    def validate_settings(self, settings: NodeSettings) -> None:
        join = {**_DEFAULT_JOIN, **(settings.get_json("join_1_2", {}) or {})}
        if not join["leftColumn"] or not join["rightColumn"]:
            raise ValueError("Join columns must be specified for the first join")
        if join["joinType"] not in JOIN_TYPES:
            raise ValueError(f"Invalid join type: {join['joinType']}")

    @staticmethod
    def _joined_spec(
        left: DataTableSpec, right: DataTableSpec, right_join: int, left_prefix: str, right_prefix: str
    ) -> DataTableSpec:
        columns = [ColumnSpec(f"{left_prefix}{c.name}", c.type) for c in left.columns]
        columns += [
            ColumnSpec(f"{right_prefix}{c.name}", c.type)
            for i, c in enumerate(right.columns)
            if i != right_join
        ]
        return DataTableSpec(tuple(columns))

    def configure(self, in_specs: list[DataTableSpec]) -> list[DataTableSpec]:
        if len(in_specs) < 2:
            raise ValueError("Joiner requires at least 2 input tables")
        right_join = in_specs[1].find_column_index(self.join_1_2["rightColumn"])
        spec = self._joined_spec(in_specs[0], in_specs[1], right_join, *self.prefixes[:2])
        if len(in_specs) > 2 and in_specs[2].columns:
            third_join = in_specs[2].find_column_index(self.join_1_3["rightColumn"])
            extra = [
                ColumnSpec(f"{self.prefixes[2]}{c.name}", c.type)
                for i, c in enumerate(in_specs[2].columns)
                if i != third_join
            ]
            spec = DataTableSpec(spec.columns + tuple(extra))
        return [spec]

    def join_two(
        self,
        left: DataTable,
        right: DataTable,
        join: dict,
        ctx: ExecutionContext,
    ) -> DataTable:
        left_index = left.spec.find_column_index(join["leftColumn"])
        right_index = right.spec.find_column_index(join["rightColumn"])
        if left_index < 0:
            raise ValueError(f"Left join column '{join['leftColumn']}' not found")
        if right_index < 0:
            raise ValueError(f"Right join column '{join['rightColumn']}' not found")

        join_type = join.get("joinType", "INNER")
        spec = self._joined_spec(left.spec, right.spec, right_index, *self.prefixes[:2])
        output = ctx.create_data_table(spec)
        right_rows = _index(right, right_index)
        matched: set[str] = set()
        count = 0

        def right_cells(row: DataRow | None) -> list[Cell]:
            if row is None:
                return _null_cells(right.spec.columns, right_index)
            return [c for i, c in enumerate(row.cells) if i != right_index]

        for processed, left_row in enumerate(left):
            if processed % 100 == 0:
                ctx.check_canceled()
            key = join_key(left_row.cells[left_index].value)
            matches = right_rows.get(key, [])
            if matches:
                matched.add(key)
                for right_row in matches:
                    output.add_row(f"joined_{count}", [*left_row.cells, *right_cells(right_row)])
                    count += 1
            elif join_type in ("LEFT", "FULL"):
                output.add_row(f"joined_{count}", [*left_row.cells, *right_cells(None)])
                count += 1

        if join_type in ("RIGHT", "FULL"):
            for key, rows in right_rows.items():
                if key in matched:
                    continue
                for right_row in rows:
                    output.add_row(
                        f"joined_{count}",
                        [*_null_cells(left.spec.columns), *right_cells(right_row)],
                    )
                    count += 1
        return output.close()

    def join_third(
        self, intermediate: DataTable, third: DataTable, ctx: ExecutionContext
    ) -> DataTable:
        join = self.join_1_3
        left_index = intermediate.spec.find_column_index(join["leftColumn"])
        right_index = third.spec.find_column_index(join["rightColumn"])
        if left_index < 0:
            raise ValueError(f"Intermediate join column '{join['leftColumn']}' not found")
        if right_index < 0:
            raise ValueError(f"Third table join column '{join['rightColumn']}' not found")

        extra = tuple(
            ColumnSpec(f"{self.prefixes[2]}{c.name}", c.type)
            for i, c in enumerate(third.spec.columns)
            if i != right_index
        )
        output = ctx.create_data_table(DataTableSpec(intermediate.spec.columns + extra))
        third_rows = _index(third, right_index)
        count = 0
        for processed, row in enumerate(intermediate):
            if processed % 100 == 0:
                ctx.check_canceled()
            matches = third_rows.get(join_key(row.cells[left_index].value), [])
            if matches:
                for match in matches:
                    cells = [c for i, c in enumerate(match.cells) if i != right_index]
                    output.add_row(f"final_{count}", [*row.cells, *cells])
                    count += 1
            elif join.get("joinType") in ("LEFT", "FULL"):
                output.add_row(f"final_{count}", [*row.cells, *_null_cells(third.spec.columns, right_index)])
                count += 1
        return output.close()

    async def execute(self, inputs: list[DataTable], ctx: ExecutionContext) -> list[DataTable]:
        if len(inputs) < 2:
            raise ValueError("Joiner requires at least 2 input tables")
        ctx.set_progress(0, "Starting table join...")
        result = self.join_two(inputs[0], inputs[1], self.join_1_2, ctx)

        third = inputs[2] if len(inputs) > 2 else None
        # An unconnected third port arrives as a table without columns
        if third is not None and third.spec.columns:
            ctx.set_progress(0.6, "Joining with third table...")
            result = self.join_third(result, third, ctx)
        return [result]

"""Synthetic Likert-scale survey data with a target Cronbach's alpha.

Responses are drawn from a multivariate normal with a uniform inter-item
correlation (via Cholesky factorisation), mapped through the normal CDF onto
each question's answer scale. The correlation is raised in 0.05 steps until
the sample reaches the target alpha or the iteration budget runs out.
"""

import csv
import io
import math
import random
from typing import Any

from app.engine.context import ExecutionContext
from app.engine.data_table import Cell, ColumnSpec, DataTable, DataTableSpec
from app.engine.node_model import NodeModel
from app.engine.registry import register_node
from app.engine.settings import NodeSettings

DEFAULT_OPTION_MAP = {2: 1, 3: 15, 5: 4}
MAX_ITERATIONS = 20
MAX_SCALE = 10


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def normalize_option_map(raw: Any) -> dict[int, int]:
    """Option map with integer keys in ascending order ({options: question count})."""
    if not isinstance(raw, dict):
        raise ValueError("Option map must be a non-empty object")
    result: dict[int, int] = {}
    for key, count in raw.items():
        try:
            options = int(key)
        except (TypeError, ValueError):
            raise ValueError("Number of options must be at least 2") from None
        if options < 2:
            raise ValueError("Number of options must be at least 2")
        if isinstance(count, bool) or not isinstance(count, (int, float)) or count < 1:
            raise ValueError("Question count must be at least 1")
        result[options] = int(count)
    if not result:
        raise ValueError("Option map must be a non-empty object")
    return dict(sorted(result.items()))


def expand_answer_options(option_map: dict[int, int]) -> list[int]:
    return [options for options, count in option_map.items() for _ in range(count)]


def default_headers(option_map: dict[int, int]) -> list[str]:
    return [f"Q{i}_{options}opt" for i, options in enumerate(expand_answer_options(option_map), start=1)]


def _sample_variance(values: list[float]) -> float:
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / (len(values) - 1)


def cronbach_alpha(data: list[list[float]]) -> float:
    """alpha = k/(k-1) * (1 - sum(item variances) / variance(total scores))."""
    if len(data) < 2 or len(data[0]) < 2:
        return 0.0
    items = len(data[0])
    item_variance = sum(_sample_variance([row[j] for row in data]) for j in range(items))
    total_variance = _sample_variance([sum(row) for row in data])
    if total_variance == 0:
        return 0.0
    return items / (items - 1) * (1 - item_variance / total_variance)


def cholesky(matrix: list[list[float]]) -> list[list[float]]:
    n = len(matrix)
    lower = [[0.0] * n for _ in range(n)]
    for i in range(n):
        for j in range(i + 1):
            total = sum(lower[i][k] * lower[j][k] for k in range(j))
            if i == j:
                lower[i][j] = math.sqrt(matrix[i][i] - total)
            else:
                lower[i][j] = (matrix[i][j] - total) / lower[j][j]
    return lower


def generate_responses(
    samples: int,
    target_alpha: float,
    option_map: dict[int, int],
    rng: random.Random | None = None,
) -> list[list[int]]:
    rng = rng or random.Random()
    options = expand_answer_options(option_map)
    questions = len(options)
    correlation = 0.5

    for iteration in range(MAX_ITERATIONS):
        matrix = [[1.0 if i == j else correlation for j in range(questions)] for i in range(questions)]
        lower = cholesky(matrix)
        responses = []
        for _ in range(samples):
            normals = [rng.gauss(0.0, 1.0) for _ in range(questions)]
            row = []
            for j in range(questions):
                value = sum(lower[j][k] * normals[k] for k in range(j + 1))
                percentile = math.erf(value / math.sqrt(2)) * 0.5 + 0.5
                row.append(min(options[j], max(1, _round_half_up(percentile * options[j]))))
            responses.append(row)

        if cronbach_alpha(responses) >= target_alpha or iteration == MAX_ITERATIONS - 1:
            return responses
        correlation = min(correlation + 0.05, 0.99)

    raise RuntimeError("Failed to generate data with desired alpha after max iterations")


def analyze_csv_options(text: str) -> tuple[list[str], dict[int, int]]:
    """Infer headers and an option map from an existing survey CSV.

    Each column's scale is its maximum when answers start at 0 or 1, else its
    value range; scales are clamped to 2..10. Rows with any non-numeric cell
    are ignored.
    """
    lines = [line for line in text.splitlines() if line.strip()]
    if len(lines) < 2:
        raise ValueError("CSV file must have at least a header row and one data row")
    delimiter = ";" if ";" in lines[0] and "," not in lines[0] else ","
    rows = list(csv.reader(io.StringIO("\n".join(lines)), delimiter=delimiter))
    headers = [h.strip().strip("\"'") for h in rows[0]]

    columns: list[list[int]] = [[] for _ in headers]
    valid_rows = 0
    for raw in rows[1:]:
        values = []
        for cell in raw[: len(headers)]:
            try:
                number = float(cell.strip().strip("\"'"))
            except ValueError:
                break
            if not math.isfinite(number):
                break
            values.append(_round_half_up(number))
        if len(values) == len(headers):
            valid_rows += 1
            for column, value in zip(columns, values):
                column.append(value)

    if not valid_rows:
        raise ValueError(
            "No valid numeric data rows found in CSV. Please ensure all columns contain numeric values."
        )

    option_map: dict[int, int] = {}
    for values in columns:
        low, high = min(values), max(values)
        scale = max(2, high) if low in (0, 1) else max(2, high - low + 1)
        scale = min(scale, MAX_SCALE)
        option_map[scale] = option_map.get(scale, 0) + 1
    return headers, dict(sorted(option_map.items()))


@register_node(
    "cronbach-alpha-generator",
    "Cronbach Alpha Generator",
    "Statistics",
    "Generate survey data with a target Cronbach's alpha",
)
class CronbachAlphaNodeModel(NodeModel):
    input_ports = 0
    output_ports = 1

    def __init__(self) -> None:
        super().__init__()
        self.sample_count = 100
        self.target_alpha = 0.8
        self.option_map: dict[int, int] = dict(DEFAULT_OPTION_MAP)
        self.custom_headers: list[str] = []
        self.input_file_headers: list[str] = []
        self.seed: int | None = None
        self.generated_data: list[list[int]] = []

    def load_settings(self, settings: NodeSettings) -> None:
        self.sample_count = settings.get_int("sampleCount", 100)
        self.target_alpha = settings.get_number("targetAlpha", 0.8)
        try:
            self.option_map = normalize_option_map(settings.get_json("optionMap", DEFAULT_OPTION_MAP))
        except ValueError:
            self.option_map = dict(DEFAULT_OPTION_MAP)
        self.custom_headers = [str(h) for h in settings.get_json("customHeaders", []) or []]
        self.input_file_headers = [str(h) for h in settings.get_json("inputFileHeaders", []) or []]
        self.seed = settings.get_int("seed") if "seed" in settings else None

    def save_settings(self, settings: NodeSettings) -> None:
        settings.set("sampleCount", self.sample_count)
        settings.set("targetAlpha", self.target_alpha)
        settings.set("optionMap", {str(k): v for k, v in self.option_map.items()})
        settings.set("customHeaders", list(self.custom_headers))
        settings.set("inputFileHeaders", list(self.input_file_headers))
        if self.seed is not None:
            settings.set("seed", self.seed)

    def validate_settings(self, settings: NodeSettings) -> None:
        if settings.get_number("sampleCount", 100) <= 0:
            raise ValueError("Sample count must be greater than 0")
        alpha = settings.get_number("targetAlpha", 0.8)
        if alpha < 0 or alpha > 1:
            raise ValueError("Target alpha must be between 0 and 1")
        if "optionMap" not in settings:
            return
        raw = settings.get_json("optionMap")
        if raw is None:
            raise ValueError("Invalid option map format")
        normalize_option_map(raw)

    def column_headers(self) -> list[str]:
        """Custom headers, then headers from an analysed file, then Q{n}_{k}opt names."""
        questions = sum(self.option_map.values())
        for headers in (self.custom_headers, self.input_file_headers):
            if headers and len(headers) == questions:
                return list(headers)
        return default_headers(self.option_map)

    def _spec(self) -> DataTableSpec:
        return DataTableSpec(tuple(ColumnSpec(h, "number") for h in self.column_headers()))

    def configure(self, in_specs: list[DataTableSpec]) -> list[DataTableSpec]:
        return [self._spec()]

    async def execute(self, inputs: list[DataTable], ctx: ExecutionContext) -> list[DataTable]:
        ctx.set_progress(0.1, "Generating synthetic data...")
        ctx.check_canceled()
        rng = random.Random(self.seed) if self.seed is not None else random.Random()
        self.generated_data = generate_responses(self.sample_count, self.target_alpha, self.option_map, rng)

        ctx.set_progress(0.5, "Creating data table...")
        output = ctx.create_data_table(self._spec())
        for i, row in enumerate(self.generated_data):
            output.add_row(f"row-{i}", [Cell("number", v) for v in row])

        ctx.set_progress(1.0, "Complete")
        return [output.close()]

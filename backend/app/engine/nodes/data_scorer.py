"""Data quality scorer: grades a table on missing values and duplicate rows."""

from dataclasses import dataclass, field
from typing import Any

from app.engine.context import ExecutionContext
from app.engine.data_table import Cell, DataTable, DataTableSpec
from app.engine.node_model import DashboardOutputConfig, NodeModel
from app.engine.registry import register_node
from app.engine.settings import NodeSettings

SCORE_SPEC = DataTableSpec.of(
    ("Metric", "string"),
    ("Value", "string"),
    ("Score", "number"),
    ("Description", "string"),
)


@dataclass
class QualityScore:
    overall_score: float
    missing_value_score: float
    duplicate_row_score: float
    total_rows: int
    total_columns: int
    missing_value_count: int
    duplicate_row_count: int
    missing_value_percentage: float
    duplicate_row_percentage: float
    grade: str
    recommendations: list[str] = field(default_factory=list)

    def to_statistics(self) -> dict[str, Any]:
        return {
            "summary": (
                f"Data Quality Analysis - Overall Score: {self.overall_score:.1f}/100 "
                f"(Grade: {self.grade})"
            ),
            "metrics": {
                "Overall Quality Score": round(self.overall_score, 1),
                "Missing Values Score": round(self.missing_value_score, 1),
                "Duplicate Rows Score": round(self.duplicate_row_score, 1),
                "Total Rows": self.total_rows,
                "Total Columns": self.total_columns,
            },
            "details": {
                "missingValueCount": self.missing_value_count,
                "missingValuePercentage": round(self.missing_value_percentage, 2),
                "duplicateRowCount": self.duplicate_row_count,
                "duplicateRowPercentage": round(self.duplicate_row_percentage, 2),
                "recommendations": list(self.recommendations),
            },
        }


def quality_grade(score: float) -> str:
    for threshold, grade in ((90, "A"), (80, "B"), (70, "C"), (60, "D")):
        if score >= threshold:
            return grade
    return "F"


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def score_table(table: DataTable, weight_missing: float = 0.6, weight_duplicates: float = 0.4) -> QualityScore:
    """Missing cells cost 2 points per percent, duplicate rows 3 points per percent."""
    total_rows = table.size
    total_columns = len(table.spec.columns)
    total_cells = total_rows * total_columns

    column_missing = [0] * total_columns
    seen: set[tuple] = set()
    duplicates = 0
    for row in table:
        for i, cell in enumerate(row.cells):
            if _blank(cell.value):
                column_missing[i] += 1
        signature = tuple("" if cell.value is None else str(cell.value) for cell in row.cells)
        if signature in seen:
            duplicates += 1
        else:
            seen.add(signature)

    missing = sum(column_missing)
    missing_pct = missing / total_cells * 100 if total_cells else 0
    duplicate_pct = duplicates / total_rows * 100 if total_rows else 0
    missing_score = max(0.0, 100 - missing_pct * 2)
    duplicate_score = max(0.0, 100 - duplicate_pct * 3)
    overall = missing_score * weight_missing + duplicate_score * weight_duplicates

    recommendations = []
    if missing_pct > 5:
        recommendations.append(
            f"High missing value rate ({missing_pct:.1f}%) - consider data imputation "
            "or removal of incomplete records"
        )
    if duplicate_pct > 2:
        recommendations.append(f"Duplicate rows detected ({duplicate_pct:.1f}%) - consider deduplication")
    if missing_pct > 20:
        recommendations.append(
            "Critical data quality issue: >20% missing values may significantly impact analysis"
        )
    if duplicate_pct > 10:
        recommendations.append("High duplication rate may skew statistical analysis and model training")
    sparse = [
        column.name
        for column, count in zip(table.spec.columns, column_missing)
        if total_rows and count / total_rows > 0.3
    ]
    if sparse:
        recommendations.append(
            f"Columns with >30% missing values: {', '.join(sparse)} - consider removal or special handling"
        )
    if overall >= 90:
        recommendations.append("Excellent data quality! Dataset is ready for analysis.")
    elif overall >= 70:
        recommendations.append("Good data quality with minor issues that should be addressed.")
    else:
        recommendations.append("Data quality needs significant improvement before analysis.")

    return QualityScore(
        overall_score=overall,
        missing_value_score=missing_score,
        duplicate_row_score=duplicate_score,
        total_rows=total_rows,
        total_columns=total_columns,
        missing_value_count=missing,
        duplicate_row_count=duplicates,
        missing_value_percentage=missing_pct,
        duplicate_row_percentage=duplicate_pct,
        grade=quality_grade(overall),
        recommendations=recommendations,
    )


@register_node("data-scorer", "Data Scorer", "Analysis", "Score data quality")
class DataScorerNodeModel(NodeModel):
    output_ports = 2

    def __init__(self) -> None:
        super().__init__()
        self.weight_missing = 0.6
        self.weight_duplicates = 0.4
        self.include_recommendations = True
        self._statistics: dict[str, Any] | None = None
        self.configure_dashboard_output(
            [
                DashboardOutputConfig(
                    port_index=0,
                    output_type="statistics",
                    title="Data Quality Analysis",
                    description="Comprehensive data quality assessment with scores and recommendations",
                ),
                DashboardOutputConfig(
                    port_index=1,
                    output_type="table",
                    title="Data Scorer - Source Data",
                    description="Original data that was analyzed for quality",
                ),
            ]
        )

    def load_settings(self, settings: NodeSettings) -> None:
        self.weight_missing = settings.get_number("weight_missing", 0.6)
        self.weight_duplicates = settings.get_number("weight_duplicates", 0.4)
        self.include_recommendations = settings.get_boolean("include_recommendations", True)

    def save_settings(self, settings: NodeSettings) -> None:
        settings.set("weight_missing", self.weight_missing)
        settings.set("weight_duplicates", self.weight_duplicates)
        settings.set("include_recommendations", self.include_recommendations)

    def validate_settings(self, settings: NodeSettings) -> None:
        weight_missing = settings.get_number("weight_missing", 0.6)
        weight_duplicates = settings.get_number("weight_duplicates", 0.4)
        if not 0 <= weight_missing <= 1:
            raise ValueError("Missing values weight must be between 0 and 1")
        if not 0 <= weight_duplicates <= 1:
            raise ValueError("Duplicate rows weight must be between 0 and 1")
        if abs(weight_missing + weight_duplicates - 1.0) > 0.01:
            raise ValueError("Weights must sum to 1.0")

    def configure(self, in_specs: list[DataTableSpec]) -> list[DataTableSpec]:
        if not in_specs:
            return [DataTableSpec(), DataTableSpec()]
        return [SCORE_SPEC, in_specs[0]]

    async def execute(self, inputs: list[DataTable], ctx: ExecutionContext) -> list[DataTable]:
        if not inputs:
            raise ValueError("No input data provided")
        table = inputs[0]
        if table.size == 0:
            raise ValueError("Input data table is empty")

        ctx.set_progress(0.1, "Analyzing data quality...")
        ctx.check_canceled()
        score = score_table(table, self.weight_missing, self.weight_duplicates)

        ctx.set_progress(0.7, "Creating quality score report...")
        cells_total = score.total_rows * score.total_columns
        metrics = [
            (
                "Overall Quality Score",
                f"{score.overall_score:.1f}/100",
                score.overall_score,
                f"Grade: {score.grade} - Overall data quality assessment",
            ),
            (
                "Missing Values Score",
                f"{score.missing_value_count}/{cells_total} ({score.missing_value_percentage:.1f}%)",
                score.missing_value_score,
                "Score based on percentage of missing values in the dataset",
            ),
            (
                "Duplicate Rows Score",
                f"{score.duplicate_row_count}/{score.total_rows} ({score.duplicate_row_percentage:.1f}%)",
                score.duplicate_row_score,
                "Score based on percentage of duplicate rows in the dataset",
            ),
            ("Total Rows", str(score.total_rows), score.total_rows, "Total number of data rows analyzed"),
            ("Total Columns", str(score.total_columns), score.total_columns, "Total number of columns analyzed"),
        ]
        output = ctx.create_data_table(SCORE_SPEC)
        for i, (metric, value, points, description) in enumerate(metrics):
            output.add_row(
                f"metric-{i}",
                [Cell("string", metric), Cell("string", value), Cell("number", points), Cell("string", description)],
            )
        if self.include_recommendations:
            for i, recommendation in enumerate(score.recommendations):
                output.add_row(
                    f"recommendation-{i}",
                    [
                        Cell("string", "Recommendation"),
                        Cell("string", recommendation),
                        Cell("number", 0),
                        Cell("string", "Data quality improvement suggestion"),
                    ],
                )

        self._statistics = score.to_statistics()
        ctx.set_progress(1.0, "Data quality analysis completed")
        return [output.close(), table]

    def send_outputs_to_dashboard(self, outputs: list[Any], ctx: ExecutionContext, node_label: str) -> list[dict]:
        # The dashboard shows the statistics summary instead of the score table
        if self._statistics is not None and outputs:
            outputs = [self._statistics, *outputs[1:]]
        return super().send_outputs_to_dashboard(outputs, ctx, node_label)

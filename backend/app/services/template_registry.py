"""System template categories and templates.

These are defined in code and seeded into the template tables on first use,
so they can be listed, searched and counted alongside user templates.
Graphs use the same serialized format as Workflow.graph_json.
"""

import copy
from dataclasses import dataclass, field

from app.engine.registry import get_registry
from app.engine.storage_manager import StorageManager


@dataclass(frozen=True)
class CategoryDefinition:
    id: str
    name: str
    description: str
    display_order: int


@dataclass
class TemplateDefinition:
    id: str
    name: str
    description: str
    use_case: str
    category_id: str
    tags: list[str]
    data: dict = field(default_factory=dict)


SYSTEM_CATEGORIES: list[CategoryDefinition] = [
    CategoryDefinition("data-processing", "Data Processing", "Templates for common data processing workflows", 1),
    CategoryDefinition("analytics", "Analytics", "Templates for data analysis and reporting", 2),
    CategoryDefinition("visualization", "Visualization", "Templates focused on data visualization", 3),
    CategoryDefinition("machine-learning", "Machine Learning", "Templates for ML and statistical analysis workflows", 4),
    CategoryDefinition("utility", "Utility", "General purpose utility templates", 5),
]

SYSTEM_CATEGORY_IDS = frozenset(c.id for c in SYSTEM_CATEGORIES)


def _make_node(
    node_id: str,
    factory_id: str,
    label: str,
    x: float,
    y: float,
    settings: dict | None = None,
) -> dict:
    factory = get_registry().require_factory(factory_id)
    return {
        "id": node_id,
        "type": "custom",
        "position": {"x": x, "y": y},
        "data": {
            "label": label,
            "factoryId": factory_id,
            "settings": settings or {},
            "inputPorts": factory.input_ports,
            "outputPorts": factory.output_ports,
            "status": "idle",
            "executed": False,
        },
    }


def _make_edge(source: str, target: str, source_port: int = 0, target_port: int = 0) -> dict:
    return {
        "id": f"{source}-{target}",
        "source": source,
        "target": target,
        "sourceHandle": f"source-{source_port}",
        "targetHandle": f"target-{target_port}",
    }


def _graph(nodes: list[dict], edges: list[dict]) -> dict:
    return {
        "nodes": nodes,
        "edges": edges,
        "metadata": {"version": "1.0", "templateType": "system"},
    }


def _build_system_templates() -> list[TemplateDefinition]:
    return [
        TemplateDefinition(
            id="sys-basic-data-processing",
            name="Basic Data Processing",
            description="A fundamental data processing workflow that loads, cleans, and filters data",
            use_case=(
                "Use this template when you need to perform basic data cleaning and filtering "
                "operations on your dataset. Perfect for preprocessing data before analysis."
            ),
            category_id="data-processing",
            tags=["data-processing", "cleaning", "filtering", "beginner"],
            data=_graph(
                [
                    _make_node("input-1", "data-input", "Data Input", 100, 100),
                    _make_node("filter-1", "row-filter", "Filter Rows", 350, 100, {"logicalOperator": "AND"}),
                    _make_node("missing-1", "missing-values", "Handle Missing Values", 600, 100, {"default_method": "REMOVE_ROWS"}),
                ],
                [_make_edge("input-1", "filter-1"), _make_edge("filter-1", "missing-1")],
            ),
        ),
        TemplateDefinition(
            id="sys-csv-analysis",
            name="CSV Analysis",
            description="Complete workflow for analyzing CSV data with statistics and visualizations",
            use_case=(
                "Use this template to quickly analyze CSV files, generate descriptive statistics, "
                "and create basic visualizations. Ideal for exploratory data analysis."
            ),
            category_id="analytics",
            tags=["analytics", "csv", "statistics", "visualization", "intermediate"],
            data=_graph(
                [
                    _make_node("input-1", "data-input", "CSV Input", 100, 200),
                    _make_node("scorer-1", "data-scorer", "Data Quality", 350, 100),
                    _make_node("chart-1", "chart", "Bar Chart", 350, 200, {"chartType": "bar"}),
                    _make_node("aggregate-1", "group-and-aggregate", "Group & Aggregate", 350, 300),
                ],
                [
                    _make_edge("input-1", "scorer-1"),
                    _make_edge("input-1", "chart-1"),
                    _make_edge("input-1", "aggregate-1"),
                ],
            ),
        ),
        TemplateDefinition(
            id="sys-data-visualization",
            name="Data Visualization Dashboard",
            description="Create multiple visualizations from your dataset including charts, graphs, and statistical plots",
            use_case=(
                "Use this template to create comprehensive visualizations of your data. "
                "Perfect for creating dashboards or presentation-ready charts."
            ),
            category_id="visualization",
            tags=["visualization", "charts", "dashboard", "presentation", "intermediate"],
            data=_graph(
                [
                    _make_node("input-1", "data-input", "Data Input", 100, 200),
                    _make_node("chart-bar", "chart", "Bar Chart", 350, 100, {"chartType": "bar", "title": "Bar Chart"}),
                    _make_node("chart-line", "chart", "Line Chart", 350, 200, {"chartType": "line", "title": "Trend Analysis"}),
                    _make_node("chart-pie", "chart", "Pie Chart", 350, 300, {"chartType": "pie", "title": "Distribution"}),
                    _make_node("chart-scatter", "chart", "Scatter Plot", 600, 150, {"chartType": "scatter", "title": "Correlation Analysis"}),
                    _make_node("chart-heatmap", "chart", "Heatmap", 600, 250, {"chartType": "heatmap", "title": "Data Heatmap"}),
                ],
                [
                    _make_edge("input-1", target)
                    for target in ("chart-bar", "chart-line", "chart-pie", "chart-scatter", "chart-heatmap")
                ],
            ),
        ),
        TemplateDefinition(
            id="sys-statistical-analysis",
            name="Statistical Analysis",
            description="Statistical analysis workflow with data cleaning, quality scoring, normalization and survey reliability",
            use_case=(
                "Use this template for statistical analysis of your data. Cleans missing values, "
                "scores data quality, normalizes numeric columns for comparison and generates "
                "survey data with a target Cronbach's alpha for reliability experiments."
            ),
            category_id="machine-learning",
            tags=["analytics", "statistics", "normalization", "reliability", "advanced"],
            data=_graph(
                [
                    _make_node("input-1", "data-input", "Data Input", 100, 150),
                    _make_node("clean-1", "missing-values", "Handle Missing Values", 350, 150, {"default_method": "MEAN"}),
                    _make_node("scorer-1", "data-scorer", "Data Quality", 600, 50),
                    _make_node("normalize-1", "normalizer", "Z-Score Normalization", 600, 200, {"normalization_method": "Z_SCORE"}),
                    _make_node("chart-1", "chart", "Scatter Plot", 850, 200, {"chartType": "scatter", "title": "Normalized Values"}),
                    _make_node("cronbach-1", "cronbach-alpha-generator", "Survey Generator", 100, 350, {"sampleCount": 100, "targetAlpha": 0.8}),
                ],
                [
                    _make_edge("input-1", "clean-1"),
                    _make_edge("clean-1", "scorer-1"),
                    _make_edge("clean-1", "normalize-1"),
                    _make_edge("normalize-1", "chart-1"),
                ],
            ),
        ),
    ]


_system_templates: list[TemplateDefinition] | None = None


def get_system_templates() -> list[TemplateDefinition]:
    global _system_templates
    if _system_templates is None:
        _system_templates = _build_system_templates()
    return _system_templates


def instantiate_template(data: dict) -> dict:
    """Fresh copy of a template graph with new node/edge ids and cleared runtime state."""
    graph = StorageManager.import_workflow(copy.deepcopy(data))
    graph = StorageManager.regenerate_ids(graph)
    metadata = {k: v for k, v in graph.get("metadata", {}).items() if k != "templateType"}
    graph["metadata"] = metadata
    return graph

"""Built-in workflow nodes. Importing this package registers every node type."""

from app.engine.nodes import (  # noqa: F401
    chart,
    column_filter,
    cronbach_alpha,
    data_input,
    data_scorer,
    group_aggregate,
    joiner,
    missing_values,
    normalizer,
    partition,
    postgres_input,
    row_filter,
    sorter,
    table_creator,
)

"""Central Prometheus metrics registry.

All application metrics are defined here to avoid scattered metric definitions
and ensure consistent naming/labeling.
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("insightflow_app", "InsightFlow application info")

# --- HTTP ---
http_requests_total = Counter(
    "insightflow_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
http_request_duration_seconds = Histogram(
    "insightflow_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

# --- Workflow execution ---
workflow_executions_total = Counter(
    "insightflow_workflow_executions_total",
    "Total workflow executions by terminal status",
    ["status"],
)
workflow_execution_duration_seconds = Histogram(
    "insightflow_workflow_execution_duration_seconds",
    "Wall-clock duration of a whole workflow execution",
)
node_execution_duration_seconds = Histogram(
    "insightflow_node_execution_duration_seconds",
    "Node execution duration in seconds",
    ["factory_id"],
)
node_failures_total = Counter(
    "insightflow_node_failures_total",
    "Total node executions that ended in error",
    ["factory_id"],
)
node_output_rows = Histogram(
    "insightflow_node_output_rows",
    "Rows on the first output port of an executed node",
    ["factory_id"],
    buckets=[0, 1, 10, 100, 1000, 5000, 10000, 50000, 100000],
)

# --- Dashboard ---
dashboard_items_persisted_total = Counter(
    "insightflow_dashboard_items_persisted_total",
    "Dashboard items written to PostgreSQL",
    ["item_type"],
)

# --- WebSocket ---
websocket_connections_active = Gauge(
    "insightflow_websocket_connections_active",
    "Number of active WebSocket connections",
)
websocket_messages_sent_total = Counter(
    "insightflow_websocket_messages_sent_total",
    "Total WebSocket messages sent",
    ["message_type"],
)
websocket_message_delivery_seconds = Histogram(
    "insightflow_websocket_message_delivery_seconds",
    "Time from Redis message receipt to WebSocket send_text() completion",
    ["channel_type"],
)

# --- Store health ---
store_health_check_duration_seconds = Histogram(
    "insightflow_store_health_check_duration_seconds",
    "Duration of store health check pings in seconds",
    ["store"],
)
store_health_status = Gauge(
    "insightflow_store_health_status",
    "Store health status (1=healthy, 0=unhealthy)",
    ["store"],
)

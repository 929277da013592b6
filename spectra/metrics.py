from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)

SPLICE_CONNECTIONS = Counter(
    "splice_connections_total",
    "Splice connections created or removed",
    ["action"],
)
SPLICE_CONFLICTS = Counter(
    "splice_conflicts_total",
    "Rejected splice requests",
    ["reason"],
)
STATUS_DETECTOR_TICKS = Counter(
    "status_detector_ticks_total",
    "Customer status detector ticks",
    ["result"],
)
CUSTOMER_STATUS_CHANGES = Counter(
    "customer_status_changes_total",
    "Customer status transitions observed by the detector",
    ["old_status", "new_status"],
)


def observe_request(method: str, path: str, status: int, duration: float) -> None:
    REQUEST_COUNT.labels(method=method, path=path, status=str(status)).inc()
    REQUEST_LATENCY.labels(method=method, path=path, status=str(status)).observe(duration)

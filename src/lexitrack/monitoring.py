"""Monitoring configuration for lexitrack."""
from prometheus_client import Counter, Gauge, Histogram, start_http_server

# Review metrics
reviews_recorded = Counter(
    "lexitrack_reviews_total",
    "Total number of review events recorded",
    ["difficulty"],
)

words_mastered = Counter(
    "lexitrack_words_mastered_total",
    "Total number of reviews that moved a word into the mastered status",
)

review_duration = Histogram(
    "lexitrack_review_duration_seconds",
    "Time spent processing a single review event",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
)

current_streak = Gauge(
    "lexitrack_current_streak",
    "Consecutive calendar days with at least one review",
)

# Store metrics
store_operations = Counter(
    "lexitrack_store_operations_total",
    "Total number of progress store operations",
    ["operation"],
)

persistence_errors = Counter(
    "lexitrack_persistence_errors_total",
    "Total number of failed progress store operations",
    ["operation"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)

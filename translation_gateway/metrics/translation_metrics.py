"""Prometheus metrics for the translation scheduler and its entry points."""

from prometheus_client import Counter, Gauge, Histogram

translation_requests_total = Counter(
    "translation_requests_total",
    "Translation entry point decisions by direction",
    ["direction", "decision"],
)

translation_cache_lookups_total = Counter(
    "translation_cache_lookups_total",
    "Translation cache lookups by result",
    ["result"],
)

translation_cache_evictions_total = Counter(
    "translation_cache_evictions_total",
    "Translation cache entries removed by reason",
    ["reason"],
)

translation_admission_rejections_total = Counter(
    "translation_admission_rejections_total",
    "Admission checks rejected by the rate limiter",
    ["reason"],
)

translation_batches_dispatched_total = Counter(
    "translation_batches_dispatched_total",
    "Number of batches dispatched by the scheduler",
)

translation_batch_size = Histogram(
    "translation_batch_size",
    "Number of queued requests per dispatched batch",
    buckets=(1, 2, 3, 5, 10, 20, 50),
)

translation_outbound_calls_total = Counter(
    "translation_outbound_calls_total",
    "Calls to the translate capability by outcome",
    ["outcome"],
)

translation_queue_length = Gauge(
    "translation_queue_length",
    "Number of requests waiting in the translation queue",
)

translation_active_requests = Gauge(
    "translation_active_requests",
    "Number of admitted batches still in flight",
)

translation_language_detection_total = Counter(
    "translation_language_detection_total",
    "Language detection outcomes by backend",
    ["backend"],
)

translation_operation_duration_seconds = Histogram(
    "translation_operation_duration_seconds",
    "Duration of translation operations",
    ["direction"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)

translation_errors_total = Counter(
    "translation_errors_total",
    "Translation failures that degraded to the original text",
    ["direction"],
)

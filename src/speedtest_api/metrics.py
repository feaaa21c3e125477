"""
Prometheus metrics for monitoring API performance and behavior.
"""
from prometheus_client import Counter, Histogram

# Request metrics
result_submissions_total = Counter(
    'result_submissions_total',
    'Total number of speed test submissions received',
    ['status']
)

result_queries_total = Counter(
    'result_queries_total',
    'Total number of speed test result queries',
    ['status']
)

# Latency metrics
request_duration_seconds = Histogram(
    'request_duration_seconds',
    'Request latency in seconds',
    ['endpoint']
)

# Storage metrics
storage_operations_total = Counter(
    'storage_operations_total',
    'Total database operations',
    ['operation', 'status']
)

# External geocoding lookups
location_lookups_total = Counter(
    'location_lookups_total',
    'Total location lookups against external geocoding services',
    ['provider', 'status']
)

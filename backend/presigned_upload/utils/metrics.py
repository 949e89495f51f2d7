"""
Prometheus metrics definitions.
All metrics are registered here and can be imported by other modules.
"""
from prometheus_client import Counter, Histogram

# HTTP request metrics
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'path', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'path'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Error metrics
errors_total = Counter(
    'errors_total',
    'Total errors',
    ['error_type']
)

# Upload protocol metrics
uploads_prepared_total = Counter(
    'uploads_prepared_total',
    'Total presigned upload authorizations issued'
)

uploads_confirmed_total = Counter(
    'uploads_confirmed_total',
    'Total uploads verified present in storage',
    ['ledgered']
)

uploads_rejected_total = Counter(
    'uploads_rejected_total',
    'Total upload requests or confirmations rejected',
    ['reason']
)

# Storage verified but ledger write failed: needs reconciliation
ledger_write_failures_total = Counter(
    'ledger_write_failures_total',
    'Total ledger writes that failed after storage confirmation'
)

storage_errors_total = Counter(
    'storage_errors_total',
    'Total storage backend errors',
    ['operation']
)

reconciliation_recovered_total = Counter(
    'reconciliation_recovered_total',
    'Total ledger records recovered by reconciliation'
)

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# HTTP
http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint']
)

# Enrollment and progress
enrollments_total = Counter('lms_enrollments_total', 'Course enrollments')
unenrollments_total = Counter('lms_unenrollments_total', 'Course unenrollments')
completions_total = Counter(
    'lms_completions_total',
    'Completion events by level',
    ['level']
)
notifications_generated_total = Counter(
    'lms_notifications_generated_total',
    'Notifications emitted by the scanner',
    ['type']
)

# Storage
storage_operations_total = Counter(
    'lms_storage_operations_total',
    'Storage adapter operations',
    ['backend', 'operation']
)
transaction_rollbacks_total = Counter('lms_transaction_rollbacks_total', 'Rolled back storage transactions')


def metrics_endpoint():
    """Prometheus scrape payload"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

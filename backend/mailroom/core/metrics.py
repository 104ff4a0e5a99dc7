"""Prometheus metrics for the application"""
from prometheus_client import Counter

# Publishing metrics
issues_published_counter = Counter(
    'mailroom_newsletter_issues_published_total',
    'Total number of newsletter issues published'
)

delivery_tasks_enqueued_counter = Counter(
    'mailroom_delivery_tasks_enqueued_total',
    'Total number of delivery tasks enqueued at publish time'
)

idempotent_replays_counter = Counter(
    'mailroom_idempotent_replays_total',
    'Total number of publish requests answered from a saved response'
)

# Delivery worker metrics
deliveries_counter = Counter(
    'mailroom_deliveries_total',
    'Total number of processed delivery tasks',
    ['outcome']  # 'sent', 'send_failed', 'invalid_email'
)

worker_iterations_counter = Counter(
    'mailroom_delivery_worker_iterations_total',
    'Total number of delivery worker loop iterations',
    ['outcome']  # 'task_completed', 'empty_queue', 'error'
)

# Auth metrics
login_attempts_counter = Counter(
    'mailroom_login_attempts_total',
    'Total number of login attempts',
    ['status']
)

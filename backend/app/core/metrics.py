"""Prometheus metrics for the application"""
from prometheus_client import Counter, Gauge, REGISTRY

# Provider metrics
try:
    provider_requests_counter = Counter(
        'shortform_provider_requests_total',
        'Total number of outbound generation requests by provider and outcome',
        ['provider', 'outcome']
    )
except ValueError:
    provider_requests_counter = REGISTRY._names_to_collectors.get('shortform_provider_requests_total')

try:
    dispatcher_fallbacks_counter = Counter(
        'shortform_dispatcher_fallbacks_total',
        'Total number of dispatches that ended on a fallback or placeholder',
        ['service', 'target']
    )
except ValueError:
    dispatcher_fallbacks_counter = REGISTRY._names_to_collectors.get('shortform_dispatcher_fallbacks_total')

# Poller metrics
try:
    poller_ticks_counter = Counter(
        'shortform_poller_ticks_total',
        'Total number of status poller ticks',
        ['status']
    )
except ValueError:
    poller_ticks_counter = REGISTRY._names_to_collectors.get('shortform_poller_ticks_total')

try:
    poller_transitions_counter = Counter(
        'shortform_poller_transitions_total',
        'Total number of job transitions made by the status poller',
        ['result']
    )
except ValueError:
    poller_transitions_counter = REGISTRY._names_to_collectors.get('shortform_poller_transitions_total')

try:
    jobs_in_flight_gauge = Gauge(
        'shortform_jobs_in_flight',
        'Number of generation jobs waiting on an external provider'
    )
except ValueError:
    jobs_in_flight_gauge = REGISTRY._names_to_collectors.get('shortform_jobs_in_flight')

# Auto-post metrics
try:
    auto_post_ticks_counter = Counter(
        'shortform_auto_post_ticks_total',
        'Total number of auto-post scheduler ticks',
        ['status']
    )
except ValueError:
    auto_post_ticks_counter = REGISTRY._names_to_collectors.get('shortform_auto_post_ticks_total')

try:
    platform_posts_counter = Counter(
        'shortform_platform_posts_total',
        'Total number of platform publish attempts by platform and outcome',
        ['platform', 'outcome']
    )
except ValueError:
    platform_posts_counter = REGISTRY._names_to_collectors.get('shortform_platform_posts_total')

# Auth metrics
try:
    login_attempts_counter = Counter(
        'shortform_login_attempts_total',
        'Total number of login attempts',
        ['status']
    )
except ValueError:
    login_attempts_counter = REGISTRY._names_to_collectors.get('shortform_login_attempts_total')

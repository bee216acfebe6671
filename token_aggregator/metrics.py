from prometheus_client import Counter, Histogram

# Upstream Metrics
upstream_requests = Counter(
    'token_aggregator_upstream_requests_total',
    'Total number of upstream provider requests',
    ['provider', 'outcome']
)

rate_limit_waits = Counter(
    'token_aggregator_rate_limit_waits_total',
    'Number of times a provider call blocked on its request window',
    ['provider']
)

# Cache Metrics
cache_lookups = Counter(
    'token_aggregator_cache_lookups_total',
    'Cache lookups by key kind and result',
    ['kind', 'result']
)

# Aggregation Metrics
aggregation_duration = Histogram(
    'token_aggregator_aggregation_duration_seconds',
    'Time spent fanning out to providers and merging results'
)

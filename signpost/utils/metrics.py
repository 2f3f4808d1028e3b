from prometheus_client import Counter, Histogram, Gauge

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path"],
)
IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "HTTP requests in progress",
)

WAITLIST_JOINS = Counter(
    "waitlist_join_total",
    "Waitlist join attempts by outcome",
    ["outcome"],
)
RATE_LIMIT_DENIALS = Counter(
    "waitlist_rate_limit_denied_total",
    "Waitlist submissions denied by the rate limiter",
    ["tier"],
)
WAITLIST_CHECKS = Counter(
    "waitlist_check_total",
    "Waitlist position lookups",
    ["found"],
)


def get_route_name(scope: dict) -> str:
    route = scope.get("route")
    if route and hasattr(route, "path"):
        return route.path
    return scope.get("path", "unknown")

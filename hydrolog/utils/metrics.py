from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

# Own registry so re-importing the app (tests, reload) never double-registers
registry = CollectorRegistry()

REQUESTS = Counter("hydrolog_requests", "Total number of requests", ["method"], registry=registry)
ERRORS = Counter("hydrolog_errors", "Responses with status >= 400", ["status"], registry=registry)
LATENCY = Histogram("hydrolog_request_duration_seconds", "Request latency", registry=registry)

def record_request(method: str, status_code: int, duration: float):
    REQUESTS.labels(method=method).inc()
    if status_code >= 400:
        ERRORS.labels(status=str(status_code)).inc()
    LATENCY.observe(duration)

def render_metrics():
    return generate_latest(registry), CONTENT_TYPE_LATEST

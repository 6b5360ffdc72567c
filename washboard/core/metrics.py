from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "path"],
)

BOOKINGS_SUBMITTED = Counter(
    "washboard_bookings_submitted_total",
    "Bookings accepted through magic links",
    ["branch_code"],
)

BOOKING_REJECTIONS = Counter(
    "washboard_booking_rejections_total",
    "Booking submissions rejected by reason code",
    ["code"],
)

MAGIC_LINKS_ISSUED = Counter(
    "washboard_magic_links_issued_total",
    "Magic links issued",
    ["branch_code"],
)

QUEUE_CONFLICTS = Counter(
    "washboard_queue_conflicts_total",
    "Queue mutations rolled back because of lock timeouts or serialization failures",
)


def render_metrics() -> tuple[bytes, str]:
    return generate_latest(), CONTENT_TYPE_LATEST

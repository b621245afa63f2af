"""
Shared constants used across all engine modules.

Centralises endpoints, default headers, and tunables so they live in
exactly one place.  ``speedcheck.config`` builds an ``EngineConfig`` from
these defaults.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36"
)

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.9",
    # compressed bodies would skew the byte count
    "Accept-Encoding": "identity",
}

# Sent with every probe and download so intermediaries never answer from cache.
NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
}

# ---------------------------------------------------------------------------
# Endpoints (Cloudflare speed service)
# ---------------------------------------------------------------------------

PING_URL = "https://speed.cloudflare.com/cdn-cgi/trace"
DOWNLOAD_URL = "https://speed.cloudflare.com/__down"
UPLOAD_URL = "https://speed.cloudflare.com/__up"

CACHE_BUST_PARAM = "t"
DOWNLOAD_SIZE_PARAM = "bytes"

# ---------------------------------------------------------------------------
# Latency
# ---------------------------------------------------------------------------

DEFAULT_PING_COUNT = 10
MIN_PING_COUNT = 3               # trimmed mean needs min + max + one interior
MAX_PING_COUNT = 100
MIN_SUCCESSFUL_PROBES = 3

# ---------------------------------------------------------------------------
# Worker pools
# ---------------------------------------------------------------------------

DOWNLOAD_WORKERS = 6
UPLOAD_WORKERS = 4
MAX_WORKERS = 32

DOWNLOAD_SIZES = (10_000_000, 25_000_000, 50_000_000)
UPLOAD_CHUNK_SIZE = 1_000_000    # 1 MB pseudorandom payload per POST
READ_CHUNK_SIZE = 64 * 1024

DOWNLOAD_RETRY_DELAY = 0.05
UPLOAD_RETRY_DELAY = 0.1
UPLOAD_SANITY_TIMEOUT = 10.0     # slower uploads are not counted

# ---------------------------------------------------------------------------
# Sampling and convergence
# ---------------------------------------------------------------------------

SAMPLE_INTERVAL = 0.1            # 100 ms between throughput samples
STABILITY_WINDOW = 15
STABILITY_TOLERANCE = 5.0        # Mbps spread allowed inside the window
STABLE_TICKS_REQUIRED = 10

MIN_PHASE_DURATION = 10.0
MAX_PHASE_DURATION = 20.0
MAX_ALLOWED_DURATION = 300.0

WARMUP_FRACTION = 0.1
MIN_THROUGHPUT_SAMPLES = 10

# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

PHASE_SETTLE_DELAY = 0.5

"""HTTP constants for the fetch layer.

Centralizes status codes, header names and defaults shared across modules.
"""

# HTTP Status Code Ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_NOT_MODIFIED = 304
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_FORBIDDEN = 403
HTTP_STATUS_SERVER_ERROR_MIN = 500

# Response headers
HEADER_LINK = "link"
HEADER_ETAG = "etag"
HEADER_RATELIMIT_REMAINING = "x-ratelimit-remaining"
HEADER_RATELIMIT_RESET = "x-ratelimit-reset"

# Request headers
HEADER_IF_NONE_MATCH = "If-None-Match"
HEADER_USER_AGENT = "User-Agent"
HEADER_AUTHORIZATION = "Authorization"

# Defaults (milliseconds unless noted)
DEFAULT_USER_AGENT = "ghrequestor"
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_RETRY_DELAY_MS = 500
DEFAULT_FORBIDDEN_DELAY_MS = 3 * 60 * 1000
DEFAULT_TOKEN_LOWER_BOUND = 500
DEFAULT_TIMEOUT_SECONDS = 30.0

# Pagination
PER_PAGE_PARAM = "per_page"
MAX_PER_PAGE = 100

# Never sleep less than this when throttling, even if the reset is in the past
MIN_RATE_LIMIT_DELAY_MS = 2000

# Bounded fan-out for resolving pages during flattening
FLATTEN_MAX_WORKERS = 10

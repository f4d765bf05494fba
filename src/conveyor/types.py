import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Union

DEFAULT_BASE_URL = "http://localhost:5000/api"


@dataclass(frozen=True)
class TransportConfig:
    base_url: str = DEFAULT_BASE_URL
    # seconds; uploads get the longer budget
    timeout: float = 30.0
    upload_timeout: float = 120.0


@dataclass(frozen=True)
class ThrottleConfig:
    # Pause after a dispatched request (success or failure) before the next one
    dispatch_delay: float = 0.5
    # Pause after an item served from the cache
    cache_hit_delay: float = 0.05


@dataclass(frozen=True)
class CacheConfig:
    ttl: float = 300.0
    # Drop cached GETs for a path after a successful write to the same path
    invalidate_on_write: bool = False


@dataclass(frozen=True)
class RetryConfig:
    # Transient failures (network, timeout, 5xx): linear backoff
    retry_attempts: int = 3
    retry_delay: float = 1.0

    # Rate limiting (429): exponential backoff, independent counter
    rate_limit_attempts: int = 3
    rate_limit_base: float = 1.0
    rate_limit_growth: float = 3.0

    # None retries every method
    retry_for_methods: Union[list[str], None] = None


@dataclass(frozen=True)
class SessionConfig:
    header: str = "Authorization"
    scheme: str = "Bearer"
    client_version: str = "1.0.0"
    auth_prefix: str = "/auth/"
    login_path: str = "/login"
    # Paths whose 404 means "no record yet" rather than an error
    quiet_404_paths: tuple[str, ...] = ("/forms/mine/latest", "/merchants/me")
    # Seconds before token expiry at which the session counts as expiring soon
    expiry_warning: float = 300.0


@dataclass
class RequestSpec:
    method: str
    path: str
    params: Union[dict[str, Any], None] = None
    data: Any = None
    json: Any = None
    files: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    timeout: Union[float, None] = None
    retry: int = 3
    retry_delay: float = 1.0
    allow_not_found: bool = False
    # headers as the caller passed them; the session rebuilds `headers` from these
    caller_headers: dict[str, str] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        self.method = self.method.upper()
        self.caller_headers = dict(self.headers)

    @property
    def is_get(self) -> bool:
        return self.method == "GET"

    def is_auth_request(self, prefix: str = "/auth/") -> bool:
        return self.method in ("GET", "POST") and self.path.startswith(prefix)

    def cache_key(self) -> str:
        """Path followed by the compact JSON of the query params, e.g. '/merchants{"limit":20}'."""
        return self.path + json.dumps(self.params or {}, separators=(",", ":"), default=str)


@dataclass
class Response:
    status: int
    data: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    url: str = ""
    method: str = "GET"

    @property
    def ok(self) -> bool:
        return self.status < 400  # noqa: PLR2004, http status code can be constant


@dataclass
class CacheEntry:
    response: Response
    expires_at: float


@dataclass
class RetryState:
    # transient-failure retries already spent
    attempts: int = 0
    # 429 retries already spent
    rate_limit_attempts: int = 0
    # set once the transient retry sequence has started
    marked_for_retry: bool = False


@dataclass
class PendingRequest:
    spec: RequestSpec
    future: asyncio.Future

from .adapters import (
    AiohttpTransport,
    HttpxTransport,
    RequestsTransport,
    Transport,
    coerce_transport,
)
from .cache import ResponseCache
from .endpoints import ApiClient
from .env import load_settings_from_env
from .errors import RequestError
from .pipeline import HttpPipeline
from .retry import RetryPolicy
from .session import (
    FileTokenStore,
    MemoryTokenStore,
    Navigator,
    Session,
    SessionState,
    TokenStore,
    decode_token_expiry,
)
from .throttle import RequestQueue
from .types import (
    CacheConfig,
    RequestSpec,
    Response,
    RetryConfig,
    RetryState,
    SessionConfig,
    ThrottleConfig,
    TransportConfig,
)

__all__ = [
    "HttpPipeline",
    "ApiClient",
    "RequestError",
    "Response",
    "RequestSpec",
    "RetryState",
    "TransportConfig",
    "ThrottleConfig",
    "CacheConfig",
    "RetryConfig",
    "SessionConfig",
    "ResponseCache",
    "RequestQueue",
    "RetryPolicy",
    "Session",
    "SessionState",
    "TokenStore",
    "MemoryTokenStore",
    "FileTokenStore",
    "Navigator",
    "decode_token_expiry",
    "Transport",
    "HttpxTransport",
    "AiohttpTransport",
    "RequestsTransport",
    "coerce_transport",
    "load_settings_from_env",
]

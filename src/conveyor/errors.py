from typing import Any, Union

# Transport-level failure codes (no HTTP status available)
TIMEOUT = "ETIMEDOUT"
NETWORK_ERROR = "ERR_NETWORK"


def extract_message(data: Any, default: str = "") -> str:
    """Pull the server-provided message out of a response body."""
    if isinstance(data, dict):
        for k in ("message", "error", "detail"):
            v = data.get(k)
            if isinstance(v, str) and v:
                return v
    if isinstance(data, str) and data.strip():
        return data.strip()
    return default


class RequestError(Exception):
    """A failed request: HTTP status >= 400 or a transport failure (status is None)."""

    def __init__(
        self,
        message: str,
        status: Union[int, None] = None,
        url: str = "",
        method: str = "",
        code: Union[str, None] = None,
        data: Any = None,
        headers: Union[dict[str, str], None] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.url = url
        self.method = method
        self.code = code
        self.data = data
        self.headers = headers or {}

    @classmethod
    def from_response(cls, response) -> "RequestError":
        default = f"Request failed with status code {response.status}"
        message = extract_message(response.data, default=default)
        return cls(
            message,
            status=response.status,
            url=response.url,
            method=response.method,
            data=response.data,
            headers=response.headers,
        )

    @property
    def is_timeout(self) -> bool:
        return self.code == TIMEOUT

    @property
    def is_network_error(self) -> bool:
        return self.status is None

    @property
    def kind(self) -> str:
        if self.status is None or self.status >= 500:  # noqa: PLR2004
            return "transient"
        if self.status == 429:  # noqa: PLR2004
            return "rate_limited"
        if self.status == 401:  # noqa: PLR2004
            return "authentication"
        if self.status == 403:  # noqa: PLR2004
            return "authorization"
        return "client"

    def __repr__(self) -> str:
        return (
            f"RequestError(status={self.status}, code={self.code}, method={self.method}, "
            f"url={self.url}, message={self.message!r})"
        )

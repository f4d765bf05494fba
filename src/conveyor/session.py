import base64
import binascii
import contextlib
import enum
import json
import logging
import os
import time
from typing import Callable, Union

from .errors import RequestError
from .types import RequestSpec, SessionConfig

TOKEN_KEY = "authToken"

# 401 messages that mean the session ran out rather than never existed
_EXPIRY_MARKERS = ("expired", "session invalidated")

# 403 message -> (login reason, clear token)
_ACCOUNT_STATUS_REASONS = (
    ("account suspended", "expired", True),
    ("account rejected", "rejected", True),
    ("account not approved", "pending", False),
)


# ---------- token store ----------


class TokenStore:
    """Key/value holder for the bearer token. Subclasses pick the backing storage."""

    def get_token(self) -> Union[str, None]:
        raise NotImplementedError

    def set_token(self, token: str) -> None:
        raise NotImplementedError

    def clear_token(self) -> None:
        raise NotImplementedError


class MemoryTokenStore(TokenStore):
    def __init__(self, token: Union[str, None] = None):
        self._token = token

    def get_token(self):
        return self._token

    def set_token(self, token):
        self._token = token

    def clear_token(self):
        self._token = None


class FileTokenStore(TokenStore):
    """Persist the token in a small JSON file, alongside any other keys already in it."""

    def __init__(self, path: str, key: str = TOKEN_KEY):
        self.path = path
        self.key = key

    def _read(self) -> dict:
        try:
            with open(self.path) as f:
                values = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError:
            logging.getLogger("conveyor").warning(
                f"token file {self.path} is not valid JSON; ignoring"
            )
            return {}
        return values if isinstance(values, dict) else {}

    def _write(self, values: dict) -> None:
        tmp = f"{self.path}.tmp"
        with open(tmp, "w") as f:
            json.dump(values, f)
        os.replace(tmp, self.path)

    def get_token(self):
        token = self._read().get(self.key)
        return token if isinstance(token, str) and token else None

    def set_token(self, token):
        values = self._read()
        values[self.key] = token
        self._write(values)

    def clear_token(self):
        values = self._read()
        if values.pop(self.key, None) is not None:
            self._write(values)


# ---------- navigation ----------


class Navigator:
    """Default redirect target: records the requested paths and logs them."""

    def __init__(self):
        self.history: list[str] = []
        self._logger = logging.getLogger("conveyor")

    def redirect(self, path: str) -> None:
        self.history.append(path)
        self._logger.info(f"redirect to={path}")

    @property
    def last(self) -> Union[str, None]:
        return self.history[-1] if self.history else None


def _coerce_navigator(navigator) -> Callable[[str], None]:
    if navigator is None:
        navigator = Navigator()
    if hasattr(navigator, "redirect"):
        return navigator.redirect
    if callable(navigator):
        return navigator
    raise TypeError("navigator must be None, a callable, or an object with redirect(path)")


# ---------- JWT expiry ----------


def decode_token_expiry(token: str) -> Union[float, None]:
    """Return the ``exp`` claim (epoch seconds) of a JWT without verifying it.

    Opaque or malformed tokens yield None.
    """
    parts = token.split(".")
    if len(parts) != 3:  # noqa: PLR2004
        return None
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (binascii.Error, ValueError):
        return None
    exp = claims.get("exp") if isinstance(claims, dict) else None
    if isinstance(exp, (int, float)) and not isinstance(exp, bool):
        return float(exp)
    return None


# ---------- session ----------


class SessionState(enum.Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"


class Session:
    """Attaches credentials to outgoing requests and reacts to auth failures.

    State machine:
        Anonymous -> Authenticated   login() stores a token
        Authenticated -> Expired     401/403 match, or the token's exp claim has passed
        Expired -> Anonymous         the login redirect has been issued
        Authenticated -> Anonymous   logout()
    """

    def __init__(
        self,
        token_store: Union[TokenStore, None] = None,
        navigator=None,
        config: Union[SessionConfig, None] = None,
    ):
        self.store = token_store or MemoryTokenStore()
        self.config = config or SessionConfig()
        self._redirect = _coerce_navigator(navigator)
        self._logger = logging.getLogger("conveyor")
        self._listeners: list[Callable[[], None]] = []
        self.state = (
            SessionState.AUTHENTICATED if self.store.get_token() else SessionState.ANONYMOUS
        )

    def _now(self) -> float:
        return time.time()

    def add_listener(self, callback: Callable[[], None]) -> None:
        """Call `callback` whenever the credentials change (login, logout, expiry)."""
        self._listeners.append(callback)

    def _changed(self) -> None:
        for callback in self._listeners:
            try:
                callback()
            except Exception:
                self._logger.exception("session listener failed")

    # --- transitions ---
    def login(self, token: str) -> None:
        self.store.set_token(token)
        self.state = SessionState.AUTHENTICATED
        self._changed()
        self._logger.info("session authenticated")

    def logout(self) -> None:
        self.store.clear_token()
        self.state = SessionState.ANONYMOUS
        self._changed()
        self._logger.info("session logged out")

    def _expire(self, path: str) -> None:
        self.store.clear_token()
        self.state = SessionState.EXPIRED
        self._changed()
        self._navigate(path)

    def _navigate(self, path: str) -> None:
        try:
            self._redirect(path)
        except Exception:
            self._logger.exception(f"redirect to {path} failed")
            return
        if self.state is SessionState.EXPIRED:
            self.state = SessionState.ANONYMOUS

    def login_url(self, reason: Union[str, None] = None) -> str:
        base = self.config.login_path
        return f"{base}?reason={reason}" if reason else base

    # --- local expiry ---
    @property
    def token(self) -> Union[str, None]:
        return self.store.get_token()

    def time_until_expiry(self) -> Union[float, None]:
        token = self.token
        exp = decode_token_expiry(token) if token else None
        return None if exp is None else exp - self._now()

    def is_expired(self) -> bool:
        remaining = self.time_until_expiry()
        return remaining is not None and remaining <= 0

    def is_expiring_soon(self, window: Union[float, None] = None) -> bool:
        remaining = self.time_until_expiry()
        if remaining is None:
            return False
        window = self.config.expiry_warning if window is None else window
        return 0 < remaining <= window

    def check_expiry(self) -> bool:
        """Expire the session if the stored token's exp claim has passed."""
        if not self.is_expired():
            return False
        self._logger.info("stored token has expired; clearing session")
        self._expire(self.login_url("expired"))
        return True

    # --- request phase ---
    def is_auth_request(self, spec: RequestSpec) -> bool:
        return spec.is_auth_request(self.config.auth_prefix)

    def apply(self, spec: RequestSpec) -> RequestSpec:
        """Attach bearer and informational headers. Never blocks on a missing token."""
        if not self.is_auth_request(spec):
            self.check_expiry()
        headers = {**spec.caller_headers}
        token = self.token
        if token:
            headers[self.config.header] = f"{self.config.scheme} {token}".strip()
        headers["X-Request-Timestamp"] = str(int(self._now() * 1000))
        headers["X-Client-Version"] = self.config.client_version
        spec.headers = headers
        return spec

    # --- response phase ---
    def is_quiet_404(self, spec: RequestSpec, status: Union[int, None]) -> bool:
        if status != 404:  # noqa: PLR2004
            return False
        return any(p in spec.path for p in self.config.quiet_404_paths)

    def on_error(self, spec: RequestSpec, error: RequestError) -> None:
        """Log, clear the token and redirect as the failure warrants. Never raises."""
        try:
            self._handle_error(spec, error)
        except Exception:
            self._logger.exception("session error handler failed")

    def _handle_error(self, spec: RequestSpec, error: RequestError) -> None:
        status = error.status
        message = error.message or ""
        lowered = message.lower()

        if status == 401:  # noqa: PLR2004, http status code can be constant
            self.store.clear_token()
            self.state = SessionState.ANONYMOUS
            self._changed()
            if not self.is_auth_request(spec):
                if any(m in lowered for m in _EXPIRY_MARKERS):
                    self._expire(self.login_url("expired"))
                else:
                    self._navigate(self.login_url())
        elif status == 403:  # noqa: PLR2004
            for marker, reason, clear in _ACCOUNT_STATUS_REASONS:
                if marker in lowered:
                    if clear:
                        self._expire(self.login_url(reason))
                    else:
                        self._navigate(self.login_url(reason))
                    break

        self.log_failure(spec, error)

    def log_failure(self, spec: RequestSpec, error: RequestError) -> None:
        """Log one failed attempt with its status, message, url and method."""
        if self.is_quiet_404(spec, error.status):
            return
        with contextlib.suppress(Exception):
            self._logger.error(
                f"request failed status={error.status} message={error.message!r} "
                f"url={error.url or spec.path} method={spec.method}"
            )

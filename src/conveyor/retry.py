from typing import Union

from .errors import RequestError
from .types import RequestSpec, RetryConfig, RetryState


def is_rate_limited(error: RequestError) -> bool:
    return error.status == 429  # noqa: PLR2004, http status code can be constant


def is_transient(error: RequestError) -> bool:
    """Network failure, client timeout, or a 5xx from the server."""
    return error.status is None or error.status >= 500  # noqa: PLR2004


class RetryPolicy:
    """Decides whether a failed attempt is re-issued, and after how long.

    Two independent branches, checked in order:
      - rate limit (429): exponential backoff ``base * growth ** attempt`` with its
        own counter and ceiling.
      - transient (network / timeout / 5xx): a single retry sequence per request,
        linear backoff ``spec.retry_delay * attempt`` while ``attempts < spec.retry``.

    Anything else is not retried.
    """

    def __init__(self, config: Union[RetryConfig, None] = None):
        self.config = config or RetryConfig()
        methods = self.config.retry_for_methods
        self._methods = {m.upper() for m in methods} if methods is not None else None

    def allows_method(self, method: str) -> bool:
        return self._methods is None or method.upper() in self._methods

    def rate_limit_delay(self, attempt: int) -> float:
        return self.config.rate_limit_base * (self.config.rate_limit_growth**attempt)

    def transient_delay(self, spec: RequestSpec, attempt: int) -> float:
        return spec.retry_delay * attempt

    def next_delay(
        self, spec: RequestSpec, state: RetryState, error: RequestError
    ) -> Union[float, None]:
        """Return the wait before the next attempt, or None to surface the error.

        Updates ``state`` in place when a retry is granted.
        """
        if not self.allows_method(spec.method):
            return None

        if is_rate_limited(error):
            if state.rate_limit_attempts >= self.config.rate_limit_attempts:
                return None
            delay = self.rate_limit_delay(state.rate_limit_attempts)
            state.rate_limit_attempts += 1
            return delay

        if is_transient(error):
            if not state.marked_for_retry:
                # first transient failure opens the one retry sequence
                state.marked_for_retry = True
                state.attempts = 0
            if state.attempts >= spec.retry:
                return None
            state.attempts += 1
            return self.transient_delay(spec, state.attempts)

        return None

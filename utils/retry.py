"""
Refresh-and-replay helper for expired credentials.

Remote APIs (Dropbox, Google Drive) hand out short-lived access tokens. When a
call fails because the token expired, the driver refreshes its credentials and
replays the call exactly once. Any other error, or a second auth failure after
the refresh, propagates to the caller unchanged.

There is deliberately no backoff loop here: rate limits, timeouts and server
errors surface as file-level failures and are picked up again by a later,
independent trigger (a new webhook or a rescan).

USAGE:
------
    from utils.retry import retry_after_refresh

    def is_auth_expired(exc):
        return isinstance(exc, MyAPIError) and exc.status_code == 401

    class MyDriver:
        def refresh_credentials(self):
            ...

        @retry_after_refresh(is_auth_expired)
        def list_things(self):
            return self.api.list()
"""

from functools import wraps
from typing import Callable, Optional


def retry_after_refresh(
    is_auth_expired: Callable[[Exception], bool],
    on_refresh: Optional[Callable[[Exception], None]] = None,
):
    """
    Decorator for driver methods: refresh credentials and replay once.

    The decorated function must be a method of an object exposing
    ``refresh_credentials()``.

    Args:
        is_auth_expired: Returns True if the exception means the access token
                         expired (or was revoked) and a refresh may help.
        on_refresh: Optional callback invoked with the exception right before
                    the refresh, useful for logging.

    Returns:
        A decorator that wraps the method.

    Example:
        @retry_after_refresh(_is_auth_expired)
        def _list_folder(self, path):
            return self.client.files_list_folder(path)
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except Exception as exc:
                if not is_auth_expired(exc):
                    raise
                if on_refresh:
                    on_refresh(exc)
                self.refresh_credentials()

            # Second attempt: errors propagate, no further refresh
            return func(self, *args, **kwargs)

        return wrapper

    return decorator

from __future__ import annotations

from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any, TypeVar

from uniperp.core.errors import PreconditionError, describe_error


T = TypeVar("T")


def status_tuple(
    fn: Callable[..., Coroutine[Any, Any, T]],
) -> Callable[..., Coroutine[Any, Any, tuple[bool, T | str]]]:
    """Wrap an async adapter method to return ``(True, result)`` or ``(False, error_str)``.

    The decorated function should perform its work and return the result directly.
    Exceptions are logged via ``self.logger`` and returned as ``(False, message)``
    where reverts are translated by :func:`uniperp.core.errors.describe_error`.
    """

    @wraps(fn)
    async def wrapper(self: Any, *args: Any, **kwargs: Any) -> tuple[bool, T | str]:
        try:
            result = await fn(self, *args, **kwargs)
            return (True, result)
        except PreconditionError as exc:
            self.logger.warning(f"{fn.__name__} rejected: {exc}")
            return (False, str(exc))
        except Exception as exc:
            message = describe_error(exc)
            self.logger.error(f"Error in {fn.__name__}: {message}")
            return (False, message)

    return wrapper  # type: ignore[return-value]

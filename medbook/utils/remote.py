"""Bounded remote calls.

Every outbound request (transcription, extraction, provider matching)
runs through ``bounded_call`` so it is cut off after a fixed timeout and
reported as a typed result instead of hanging or raising.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

import httpx

from medbook.config import REMOTE_TIMEOUT_SECONDS
from medbook.models.errors import UpstreamServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RemoteResult(Generic[T]):
    """Outcome of a bounded remote call.

    Attributes:
        service: Name of the remote service (for logs and errors)
        value: Return value when the call succeeded
        error: Exception raised by the call, if any
        timed_out: True when the call exceeded its timeout
        elapsed: Wall-clock seconds spent waiting
    """

    service: str
    value: T | None = None
    error: Exception | None = None
    timed_out: bool = False
    elapsed: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None and not self.timed_out

    def unwrap(self) -> T:
        """Return the value or raise ``UpstreamServiceError``."""
        if self.timed_out:
            raise UpstreamServiceError(
                self.service,
                f"{self.service} timed out after {self.elapsed:.1f}s",
                timed_out=True,
            )
        if self.error is not None:
            if isinstance(self.error, UpstreamServiceError):
                raise self.error
            raise UpstreamServiceError(
                self.service,
                f"{self.service} failed: {self.error}",
                details={"exception_type": type(self.error).__name__},
            ) from self.error
        return self.value  # type: ignore[return-value]


def bounded_call(
    fn: Callable[..., T],
    *args: Any,
    service: str,
    timeout: float | None = None,
    **kwargs: Any,
) -> RemoteResult[T]:
    """Run ``fn`` with a hard timeout.

    The call runs on a worker thread; if it does not finish within
    ``timeout`` seconds the caller gets a timed-out result immediately and
    the worker is abandoned. httpx timeouts raised by the callable itself
    are reported as timeouts too.

    Args:
        fn: Callable performing the remote request
        service: Service name used in logs and errors
        timeout: Seconds to wait (default: REMOTE_TIMEOUT_SECONDS)

    Returns:
        RemoteResult describing the outcome
    """
    limit = REMOTE_TIMEOUT_SECONDS if timeout is None else timeout
    started = time.monotonic()
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"remote-{service}")
    future = executor.submit(fn, *args, **kwargs)

    try:
        value = future.result(timeout=limit)
    except FutureTimeout:
        elapsed = time.monotonic() - started
        logger.error(f"⏱️ {service} timed out after {elapsed:.1f}s")
        return RemoteResult(service=service, timed_out=True, elapsed=elapsed)
    except httpx.TimeoutException as e:
        elapsed = time.monotonic() - started
        logger.error(f"⏱️ {service} timed out: {e}")
        return RemoteResult(service=service, error=e, timed_out=True, elapsed=elapsed)
    except Exception as e:
        elapsed = time.monotonic() - started
        logger.error(f"❌ {service} failed: {e}")
        return RemoteResult(service=service, error=e, elapsed=elapsed)
    finally:
        executor.shutdown(wait=False)

    return RemoteResult(
        service=service, value=value, elapsed=time.monotonic() - started
    )


__all__ = ["RemoteResult", "bounded_call"]

"""AWS client management for the account sweeper.

One boto3 session per run, one client per (service, region), and a retry
strategy applied to every live mutating call. botocore's own retries are
switched off so that each deletion attempt shows up once in the logs.
"""

import logging
import random
import threading
import time
from collections.abc import Callable
from typing import Any, TypeVar

import boto3
from botocore.config import Config
from botocore.exceptions import (
    ClientError,
    ConnectionClosedError,
    EndpointConnectionError,
    ReadTimeoutError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Rate limiting and transient service-side conditions
THROTTLING_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "TooManyRequestsException",
        "RequestLimitExceeded",
        "SlowDown",
        "ServiceUnavailable",
        "InternalError",
        "RequestTimeout",
    }
)

# Another request on the same resource is still settling (S3 bucket
# deletion right after emptying, Route 53-style change batches)
CONFLICT_CODES = frozenset({"OperationAborted", "PriorRequestNotComplete"})

TRANSIENT_TRANSPORT_ERRORS = (EndpointConnectionError, ConnectionClosedError, ReadTimeoutError)


def error_code(error: Exception) -> str:
    """AWS error code of a ClientError, empty for anything else."""
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "")
    return ""


class RetryStrategy:
    """Exponential backoff with jitter for throttled or transiently failing calls."""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        jitter: bool = True,
    ):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter

    def is_retryable(self, error: Exception) -> bool:
        if isinstance(error, TRANSIENT_TRANSPORT_ERRORS):
            return True
        code = error_code(error)
        return code in THROTTLING_CODES or code in CONFLICT_CODES

    def execute_with_retry(self, operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Call operation, retrying retryable failures.

        Raises:
            The last error once retries are exhausted, or the first
            non-retryable error immediately
        """
        attempt = 0
        while True:
            try:
                return operation(*args, **kwargs)
            except (ClientError, *TRANSIENT_TRANSPORT_ERRORS) as e:
                if attempt >= self.max_retries or not self.is_retryable(e):
                    raise
                delay = self._calculate_delay(attempt)
                attempt += 1
                logger.warning(
                    f"Retryable error {error_code(e) or type(e).__name__}, "
                    f"attempt {attempt}/{self.max_retries + 1}, waiting {delay:.2f}s"
                )
                time.sleep(delay)

    def _calculate_delay(self, attempt: int) -> float:
        delay: float = min(self.base_delay * (2**attempt), self.max_delay)
        if self.jitter:
            delay *= 0.5 + random.random() * 0.5
        return delay


# Provider retries off; RetryStrategy owns retrying
CLIENT_CONFIG = Config(
    retries={"max_attempts": 0},
    connect_timeout=10,
    read_timeout=60,
    user_agent_extra="account-sweeper",
)


class AWSClientManager:
    """Hands out boto3 clients per (service, region) from one session.

    Clients are created lazily and cached. boto3 sessions are not safe for
    concurrent client creation, so creation is serialized; the clients
    themselves are shared freely between worker threads.
    """

    def __init__(
        self,
        home_region: str = "us-east-1",
        profile_name: str | None = None,
        retry_strategy: RetryStrategy | None = None,
        session: Any = None,
    ):
        self.home_region = home_region
        self.profile_name = profile_name
        self.retry_strategy = retry_strategy or RetryStrategy()
        self._session = session
        self._clients: dict[tuple[str, str], Any] = {}
        self._lock = threading.Lock()

    def get_client(self, service_name: str, region: str | None = None) -> Any:
        """Client for a service in a region; the home region when region is None."""
        cache_key = (service_name, region or self.home_region)
        with self._lock:
            client = self._clients.get(cache_key)
            if client is None:
                if self._session is None:
                    self._session = boto3.Session(
                        profile_name=self.profile_name, region_name=self.home_region
                    )
                logger.debug(f"Creating {service_name} client for {cache_key[1]}")
                client = self._session.client(
                    service_name, config=CLIENT_CONFIG, region_name=cache_key[1]
                )
                self._clients[cache_key] = client
            return client

    # Home-region clients used at startup and for the final report
    @property
    def sts(self) -> Any:
        return self.get_client("sts")

    @property
    def sns(self) -> Any:
        return self.get_client("sns")

    @property
    def ec2(self) -> Any:
        return self.get_client("ec2")

    def get_account_id(self) -> str:
        """Account the session's credentials belong to (STS GetCallerIdentity)."""
        account_id: str = self.sts.get_caller_identity()["Account"]
        return account_id

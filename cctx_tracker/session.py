"""HTTP session management for ZetaChain LCD API.

The session is shared by all worker threads of a poll cycle.
``requests.Session`` connection pool is thread-safe for plain GET requests,
so we only need to size the pool to match the worker count.
"""

import logging

from requests import Session
from requests.adapters import HTTPAdapter

from cctx_tracker.logging_retry import LoggingRetry

logger = logging.getLogger(__name__)

#: Default number of retries for API requests
DEFAULT_RETRIES = 3

#: Default backoff factor for retries (seconds)
DEFAULT_BACKOFF_FACTOR = 0.5


def create_zetachain_session(
    retries: int = DEFAULT_RETRIES,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    pool_maxsize: int = 16,
) -> Session:
    """Create a requests Session configured for ZetaChain LCD API.

    The session is configured with retry logic for handling transient errors
    using exponential backoff.

    404 and 400 are not retried: they are how ZetaChain tells us
    a CCTX does not exist (yet), and the poll loop retries those on the next cycle anyway.

    Example::

        from cctx_tracker.session import create_zetachain_session

        session = create_zetachain_session()
        response = session.get("https://zetachain-athens.blockpi.network/lcd/v1/public/zeta-chain/observer/TSS")

    :param retries:
        Maximum number of retry attempts for failed requests
    :param backoff_factor:
        Backoff factor for exponential retry delays
    :param pool_maxsize:
        Maximum number of connections to keep in the connection pool.
        Should be at least as large as max_workers of the tracker.
    :return:
        Configured requests Session with retry logic
    """
    session = Session()

    retry_policy = LoggingRetry(
        total=retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        respect_retry_after_header=True,
        # Let the caller see the final error response instead of MaxRetryError
        raise_on_status=False,
        logger=logger,
    )

    adapter = HTTPAdapter(
        max_retries=retry_policy,
        pool_connections=pool_maxsize,
        pool_maxsize=pool_maxsize,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session

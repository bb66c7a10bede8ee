"""Polling a freshly started server until it answers HTTP requests."""

from __future__ import annotations

import time
from collections.abc import Callable

import requests

from perfcompare.config import CI_WAIT, WaitPolicy
from perfcompare.errors import ServerUnreachable
from perfcompare.logging import get_logger

log = get_logger("reachability")

_USER_AGENT = "perfcompare (reachability check)"


def is_reachable(url: str, *, timeout: float = 2.0) -> bool:
    """Request *url* once.

    Any HTTP response counts as reachable, whatever its status code.
    Connection errors and timeouts count as unreachable.  Proxy settings
    from the environment are ignored; the servers are local.
    """
    session = requests.Session()
    session.trust_env = False
    try:
        resp = session.get(url, timeout=timeout, headers={"User-Agent": _USER_AGENT})
    except requests.ConnectionError:
        return False
    except requests.Timeout:
        log.debug("Timeout probing %s", url)
        return False
    except requests.RequestException as exc:
        log.debug("Request error probing %s: %s", url, exc)
        return False
    finally:
        session.close()
    resp.close()
    return True


def wait_for_server(
    url: str,
    *,
    policy: WaitPolicy = CI_WAIT,
    check: Callable[..., bool] = is_reachable,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Block until *url* is reachable.

    Checks at most ``policy.max_attempts`` times, sleeping
    ``policy.interval`` seconds between checks.  A server that crashed on
    startup is indistinguishable from a slow one and fails the same way.

    Returns:
        The 1-based attempt on which the server answered.

    Raises:
        ServerUnreachable: If every attempt failed.
    """
    log.info("Waiting for %s (up to %d attempts)", url, policy.max_attempts)
    for attempt in range(1, policy.max_attempts + 1):
        log.debug("Checking reachable %s attempt %d", url, attempt)
        if check(url, timeout=policy.request_timeout):
            log.info("%s reachable after %d attempt(s)", url, attempt)
            return attempt
        if attempt < policy.max_attempts:
            sleep(policy.interval)
    raise ServerUnreachable(url, policy.max_attempts)

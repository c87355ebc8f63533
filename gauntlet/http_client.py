import logging
import time
from concurrent.futures import ThreadPoolExecutor
from http.cookiejar import DefaultCookiePolicy
from typing import List, Mapping, Optional, Sequence

import requests
from requests.adapters import HTTPAdapter

from .models import (
    ConcurrencyMode,
    NetworkError,
    ProbeOutcome,
    ProbeRequest,
    ServerError,
    Success,
    Timeout,
)

logger = logging.getLogger("gauntlet.http_client")

USER_AGENT = "gauntlet/1.0 (+resilience-and-security-harness)"


class ProbeDispatcher:
    """
    Issues probes against the target and folds every result into exactly one
    ProbeOutcome. Never raises for HTTP statuses or transport failures.

    Concurrent batches run on a bounded thread pool (`max_in_flight` workers),
    so a burst of N probes keeps at most `max_in_flight` sockets open.
    """

    def __init__(self, base_url: str, max_in_flight: int = 64, snippet_limit: int = 4096,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.max_in_flight = max(1, max_in_flight)
        self.snippet_limit = snippet_limit
        self.session = session or requests.Session()
        # Every probe is independent; Set-Cookie from the target is never replayed
        self.session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))

        adapter = HTTPAdapter(pool_connections=self.max_in_flight, pool_maxsize=self.max_in_flight)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)
        self.session.headers.update({
            "User-Agent": USER_AGENT,
            "Accept": "application/json, text/plain, */*",
        })

    def url_for(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def _read_snippet(self, resp: requests.Response) -> str:
        # Only the first snippet_limit bytes of the body are read
        chunk = next(resp.iter_content(chunk_size=self.snippet_limit), b"")[:self.snippet_limit]
        try:
            return chunk.decode(resp.encoding or "utf-8", errors="replace")
        except LookupError:
            return chunk.decode("utf-8", errors="replace")

    def dispatch(self, probe: ProbeRequest) -> ProbeOutcome:
        url = self.url_for(probe.path)
        start = time.perf_counter()
        try:
            resp = self.session.request(
                method=probe.method,
                url=url,
                headers=dict(probe.headers),
                json=dict(probe.body) if isinstance(probe.body, Mapping) else probe.body,
                timeout=probe.timeout_ms / 1000.0,
                allow_redirects=False,
                stream=True,
            )
            try:
                snippet = self._read_snippet(resp)
            finally:
                resp.close()
        except requests.Timeout:
            # ConnectTimeout is also a ConnectionError; a timeout always wins
            elapsed = (time.perf_counter() - start) * 1000.0
            logger.debug("%s %s -> timeout after %.0fms", probe.method, url, elapsed)
            return Timeout(latency_ms=elapsed)
        except requests.RequestException as e:
            logger.debug("%s %s -> network error: %s", probe.method, url, e)
            return NetworkError(reason=f"{type(e).__name__}: {e}")

        elapsed = (time.perf_counter() - start) * 1000.0
        headers = {k.lower(): v for k, v in resp.headers.items()}
        logger.debug("%s %s -> %d (%.0fms)", probe.method, url, resp.status_code, elapsed)

        if resp.status_code >= 500:
            return ServerError(status=resp.status_code, body_snippet=snippet,
                               headers=headers, latency_ms=elapsed)
        return Success(status=resp.status_code, body_snippet=snippet,
                       headers=headers, latency_ms=elapsed)

    def dispatch_batch(self, probes: Sequence[ProbeRequest],
                       mode: ConcurrencyMode = ConcurrencyMode.CONCURRENT,
                       pacing_ms: int = 0) -> List[ProbeOutcome]:
        """
        Outcome i always belongs to probes[i]. There is no mid-batch
        cancellation: every slot is awaited, bounded only by its own timeout.
        `pacing_ms` is slept between probes in SEQUENTIAL mode.
        """
        probes = list(probes)
        if not probes:
            return []

        if mode is ConcurrencyMode.SEQUENTIAL:
            outcomes = []
            for i, probe in enumerate(probes):
                if i and pacing_ms:
                    time.sleep(pacing_ms / 1000.0)
                outcomes.append(self.dispatch(probe))
            return outcomes

        workers = min(self.max_in_flight, len(probes))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            # map() yields in submission order, one result per input slot
            return list(executor.map(self.dispatch, probes))

    def close(self):
        self.session.close()

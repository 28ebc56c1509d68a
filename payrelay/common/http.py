"""Shared outbound HTTP call wrapper.

Every upstream call goes through `send` so latency/result metrics and the
transport-error mapping stay uniform across dependencies.
"""

from time import perf_counter

import httpx

from payrelay.common.errors import UpstreamError
from payrelay.common.logging import logger
from payrelay.common.metrics import upstream_request_duration_seconds, upstream_requests_total


def build_http_client(timeout_seconds: float, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """One pooled client per process with a bounded timeout on every call."""

    return httpx.AsyncClient(timeout=timeout_seconds, transport=transport)


async def send(client: httpx.AsyncClient, dependency: str, method: str, url: str, **kwargs) -> httpx.Response:
    """Issue one request; raise `UpstreamError` on timeout or transport failure."""

    start = perf_counter()
    try:
        resp = await client.request(method, url, **kwargs)
    except httpx.TimeoutException as exc:
        upstream_requests_total.labels(dependency=dependency, result="timeout").inc()
        logger.error("upstream timeout dependency=%s method=%s", dependency, method)
        raise UpstreamError(f"{dependency} request timed out") from exc
    except httpx.HTTPError as exc:
        upstream_requests_total.labels(dependency=dependency, result="transport_error").inc()
        logger.error("upstream transport error dependency=%s error=%s", dependency, exc)
        raise UpstreamError(f"{dependency} request failed: {exc}") from exc
    finally:
        upstream_request_duration_seconds.labels(dependency=dependency).observe(max(0.0, perf_counter() - start))
    upstream_requests_total.labels(dependency=dependency, result=str(resp.status_code)).inc()
    return resp

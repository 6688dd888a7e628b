"""LinkLens analytics client for closing sessions and reading aggregates."""

import asyncio
import logging
import random
from datetime import datetime

import httpx

from linklens.analytics.schema import (
    AccountSummary,
    LinkReport,
    PageStats,
    SessionScore,
    ViewerSummary,
    ViewSession,
)

_TRANSIENT_STATUS_CODES = {429, 500, 502, 503, 504}


class Client:
    """
    Async client for the LinkLens analytics service.

    Usage:
        from linklens.analytics import Client, ViewSession

        async with Client(
            endpoint="https://analytics.example.com",
            api_key="your-api-key"
        ) as client:
            scored = await client.close_session(
                account_id="acct-1",
                session=ViewSession(
                    link_id="deck-q3",
                    viewer_email="ana@acme.com",
                    started_at=started,
                    total_duration_seconds=150,
                    max_page_reached=12,
                    total_pages=12,
                ),
            )

            report = await client.get_link_report("deck-q3")
            if report is not None:
                print(report.summary.hot_leads)
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        timeout: float = 30.0,
        fail_silently: bool = True,
        max_retries: int = 3,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            endpoint: Base URL for the analytics API.
            api_key: API key for authentication.
            timeout: Request timeout in seconds.
            fail_silently: If True, catch errors and log warnings instead of raising.
            max_retries: Number of retries for transient HTTP errors.
            logger: Logger instance; defaults to ``logging.getLogger("linklens.analytics")``.
        """
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.fail_silently = fail_silently
        self.max_retries = max_retries
        self.logger = logger or logging.getLogger("linklens.analytics")
        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers={"X-API-Key": api_key},
        )

    async def _request(
        self,
        method: str,
        url: str,
        json: dict | None = None,
        params: dict | None = None,
    ) -> httpx.Response | None:
        """Send an HTTP request with retry and optional silent failure.

        Retries on transient status codes (429, 500, 502, 503, 504) and
        connection/timeout errors using exponential backoff with jitter.

        Returns:
            The HTTP response, or None if ``fail_silently`` is True and the
            request failed after all retries.
        """
        last_exc: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(method, url, json=json, params=params)
                if response.status_code in _TRANSIENT_STATUS_CODES and attempt < self.max_retries:
                    wait = (2**attempt) + random.uniform(0, 1)  # noqa: S311
                    self.logger.warning(
                        "Transient HTTP %s from %s (attempt %d/%d), retrying in %.1fs",
                        response.status_code,
                        url,
                        attempt + 1,
                        self.max_retries + 1,
                        wait,
                    )
                    await asyncio.sleep(wait)
                    continue
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as exc:
                last_exc = exc
                # Not transient, no retry
                break
            except (httpx.ConnectError, httpx.TimeoutException) as exc:
                last_exc = exc
                if attempt < self.max_retries:
                    wait = (2**attempt) + random.uniform(0, 1)  # noqa: S311
                    self.logger.warning(
                        "%s for %s (attempt %d/%d), retrying in %.1fs",
                        type(exc).__name__,
                        url,
                        attempt + 1,
                        self.max_retries + 1,
                        wait,
                    )
                    await asyncio.sleep(wait)
                    continue
                break

        if self.fail_silently:
            self.logger.warning("Request to %s failed: %s", url, last_exc)
            return None
        raise last_exc  # type: ignore[misc]

    async def close_session(
        self,
        account_id: str,
        session: ViewSession,
    ) -> SessionScore | None:
        """Report a closed session so the service scores it and updates the contact.

        Args:
            account_id: Account owning the link.
            session: The finished session with its raw counters.

        Returns:
            The score the service stored, or None on silent failure.
        """
        if not account_id:
            self.logger.warning("close_session skipped: account_id is empty")
            return None
        response = await self._request(
            "POST",
            f"{self.endpoint}/sessions/close",
            json={
                "account_id": account_id,
                "session": session.model_dump(mode="json"),
            },
        )
        if response is None:
            return None
        return SessionScore.model_validate(response.json())

    async def get_link_report(
        self,
        link_id: str,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> LinkReport | None:
        """Fetch the full report for one link.

        Args:
            link_id: Link to report on.
            since: Only sessions started at or after this time.
            until: Only sessions started before this time; also the report's
                reference time.
        """
        params = {}
        if since is not None:
            params["since"] = since.isoformat()
        if until is not None:
            params["until"] = until.isoformat()
        response = await self._request(
            "GET",
            f"{self.endpoint}/links/{link_id}/report",
            params=params or None,
        )
        if response is None:
            return None
        return LinkReport.model_validate(response.json())

    async def get_viewers(self, link_id: str) -> list[ViewerSummary] | None:
        """Fetch per-viewer summaries for one link, hottest first."""
        response = await self._request("GET", f"{self.endpoint}/links/{link_id}/viewers")
        if response is None:
            return None
        return [ViewerSummary.model_validate(v) for v in response.json()]

    async def get_pages(self, link_id: str) -> list[PageStats] | None:
        """Fetch the page heatmap and drop-off for one document link."""
        response = await self._request("GET", f"{self.endpoint}/links/{link_id}/pages")
        if response is None:
            return None
        return [PageStats.model_validate(p) for p in response.json()]

    async def get_account_summary(self, account_id: str) -> AccountSummary | None:
        """Fetch the roll-up of every link of one account."""
        response = await self._request("GET", f"{self.endpoint}/accounts/{account_id}/summary")
        if response is None:
            return None
        return AccountSummary.model_validate(response.json())

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "Client":
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.close()

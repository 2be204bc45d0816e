"""
URL liveness probe and source validator.

Each URL gets a cheap HEAD probe with a short timeout and, when that fails
or returns a non-2xx status, a GET probe with a longer timeout and a
browser User-Agent. Each probe is capped by its timeout in wall-clock
time. Sources are checked one after another.

Dependencies: httpx, market_map.core.research_agent.schemas
System role: Citation liveness checks
"""

import asyncio
import logging
from collections.abc import Sequence

import httpx

from market_map.core.research_agent.schemas import Source, ValidationReport

logger = logging.getLogger(__name__)


class SourceValidator:
    """
    Layered HEAD then GET liveness probe.

    Attributes:
        head_timeout: HEAD probe timeout in seconds
        get_timeout: GET probe timeout in seconds
        user_agent: User-Agent header sent with the GET probe
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        head_timeout: float = 5.0,
        get_timeout: float = 7.0,
        user_agent: str = "Mozilla/5.0",
    ) -> None:
        self._client = client
        self.head_timeout = head_timeout
        self.get_timeout = get_timeout
        self.user_agent = user_agent

    async def probe(self, url: str) -> bool:
        """
        Whether ``url`` answers with a 2xx status.

        Each probe is bounded by its timeout end to end, so a server that
        drips headers or body cannot hold the check open. The GET probe
        streams the response and never reads the body.

        Args:
            url: URL to check

        Returns:
            bool: True if either probe succeeded
        """
        try:
            if await asyncio.wait_for(self._head(url), timeout=self.head_timeout):
                return True
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.debug(f"{__name__}:probe - HEAD failed url={url}: {type(e).__name__}")
        except (httpx.InvalidURL, ValueError) as e:
            logger.debug(f"{__name__}:probe - HEAD rejected url={url}: {e}")
            return False

        try:
            return await asyncio.wait_for(self._get(url), timeout=self.get_timeout)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, asyncio.TimeoutError) as e:
            logger.debug(f"{__name__}:probe - GET failed url={url}: {type(e).__name__}")
            return False

    async def _head(self, url: str) -> bool:
        response = await self._client.head(url, follow_redirects=True, timeout=self.head_timeout)
        return response.is_success

    async def _get(self, url: str) -> bool:
        async with self._client.stream(
            "GET",
            url,
            follow_redirects=True,
            timeout=self.get_timeout,
            headers={"User-Agent": self.user_agent},
        ) as response:
            return response.is_success

    async def validate(self, sources: Sequence[Source]) -> ValidationReport:
        """
        Partition sources into valid and invalid, order preserved.

        Args:
            sources: Candidates to check

        Returns:
            ValidationReport: valid/invalid partition
        """
        report = ValidationReport()
        for source in sources:
            if await self.probe(source.url):
                report.valid.append(source)
            else:
                report.invalid.append(source)
        logger.info(
            f"{__name__}:validate - valid={len(report.valid)} invalid={len(report.invalid)}"
        )
        return report

"""HTTP retrieval of calendar feed documents."""
import logging

import requests

from exceptions import FetchError

logger = logging.getLogger(__name__)


class FeedRetriever:
    """Fetches raw calendar feed bytes for one external source."""

    USER_AGENT = 'TeamCalendarSync/1.0'
    SUBSCRIPTION_SCHEMES = ('webcal://', 'webcals://')

    def __init__(self, timeout: int = 30, session: requests.Session = None):
        """
        Initialize the feed retriever.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session to reuse connections
        """
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def normalize_url(cls, url: str) -> str:
        """
        Rewrite calendar-subscription schemes to https.

        Args:
            url: Feed URL as registered by the user

        Returns:
            URL an HTTP client can fetch
        """
        url = url.strip()
        lowered = url.lower()
        for scheme in cls.SUBSCRIPTION_SCHEMES:
            if lowered.startswith(scheme):
                return 'https://' + url[len(scheme):]
        return url

    def fetch(self, url: str) -> bytes:
        """
        Fetch a calendar feed.

        Args:
            url: Feed URL (webcal:// is accepted)

        Returns:
            Raw feed bytes

        Raises:
            FetchError: On a non-2xx response, timeout or network failure
        """
        fetch_url = self.normalize_url(url)
        if fetch_url != url:
            logger.info(f"Converted subscription URL to https for fetching: {fetch_url}")

        headers = {
            'Accept': 'text/calendar',
            'Cache-Control': 'no-cache',
            'User-Agent': self.USER_AGENT,
        }

        try:
            response = self.session.get(
                fetch_url,
                headers=headers,
                timeout=self.timeout
            )
        except requests.Timeout as e:
            logger.error(f"Timed out fetching calendar after {self.timeout}s: {fetch_url}")
            raise FetchError(
                f"Failed to fetch calendar: timed out after {self.timeout}s"
            ) from e
        except requests.RequestException as e:
            logger.error(f"Network error fetching calendar {fetch_url}: {e}")
            raise FetchError(f"Failed to fetch calendar: {e}") from e

        if not response.ok:
            logger.error(
                f"Failed to fetch calendar: {response.status_code} {response.reason}",
                extra={'url': fetch_url, 'status_code': response.status_code}
            )
            raise FetchError(
                f"Failed to fetch calendar: {response.status_code} {response.reason}",
                status_code=response.status_code
            )

        logger.info(f"Fetched calendar data, length: {len(response.content)}")
        return response.content

"""
Apify integration for reading the supplier feed.

The feed is the dataset of the scraping actor's most recent run.
"""

from typing import Optional
import requests
import structlog

from config.settings import Settings, get_settings
from exceptions import SourceFetchError

logger = structlog.get_logger(__name__)

PAGE_SIZE = 1000


class ApifyClient:
    """Reads the last actor run's dataset, page by page."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings or get_settings()
        self.session = session or requests.Session()

    @property
    def dataset_url(self) -> str:
        return (
            f"{self.settings.apify_base_url}/acts/"
            f"{self.settings.apify_actor_id}/runs/last/dataset/items"
        )

    def fetch_all(self) -> list[dict]:
        """
        Fetch every record of the latest dataset.

        Returns:
            Raw feed records

        Raises:
            SourceFetchError: If the token is missing or any page fails
        """
        if not self.settings.apify_token:
            raise SourceFetchError("APIFY_TOKEN not set")

        records: list[dict] = []
        offset = 0

        logger.info("fetching_source_feed", actor=self.settings.apify_actor_id)

        while True:
            try:
                response = self.session.get(
                    self.dataset_url,
                    params={
                        "token": self.settings.apify_token,
                        "offset": offset,
                        "limit": PAGE_SIZE,
                        "clean": "true",
                        "format": "json",
                    },
                    timeout=self.settings.fetch_timeout_seconds,
                )
                response.raise_for_status()
                page = response.json()
            except requests.exceptions.RequestException as e:
                logger.error("source_feed_fetch_failed", offset=offset, error=str(e))
                raise SourceFetchError(str(e), details={"offset": offset})
            except ValueError as e:
                logger.error("source_feed_invalid_json", offset=offset, error=str(e))
                raise SourceFetchError(f"invalid JSON: {e}", details={"offset": offset})

            if not isinstance(page, list):
                raise SourceFetchError("unexpected response shape", details={"offset": offset})
            if not page:
                break

            records.extend(page)
            offset += len(page)

            if len(page) < PAGE_SIZE:
                break

        logger.info("source_feed_fetched", count=len(records))
        return records

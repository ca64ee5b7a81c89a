"""CurseForge API client."""
import logging
from dataclasses import dataclass

from pydantic import ValidationError

from addon_radar.collectors.base import BaseCollector
from addon_radar.collectors.schemas import CategoriesResponse, Category, Mod, SearchModsResponse
from addon_radar.config import Settings, get_settings
from addon_radar.errors import FatalError

logger = logging.getLogger(__name__)

GAME_ID_WOW = 1


@dataclass(frozen=True)
class SortStrategy:
    """A listing order; several are combined to see past the search result cap."""
    name: str
    field: int


SORT_POPULARITY = SortStrategy("popularity", 2)
SORT_LAST_UPDATED = SortStrategy("last_updated", 3)
SORT_TOTAL_DOWNLOADS = SortStrategy("total_downloads", 6)

DEFAULT_SORT_STRATEGIES = (SORT_POPULARITY, SORT_LAST_UPDATED, SORT_TOTAL_DOWNLOADS)


class CurseForgeClient(BaseCollector):
    """Fetch addon listings and categories from the CurseForge API."""

    name = "curseforge"
    rate_limit_delay = 0.05  # Small delay between pages to be nice to the API

    def __init__(self, settings: Settings | None = None, **kwargs):
        settings = settings or get_settings()
        super().__init__(settings, **kwargs)
        self.api_key = settings.curseforge_api_key
        self.base_url = settings.curseforge_base_url.rstrip("/")
        self.rate_limit_delay = settings.page_delay_seconds
        self.page_size = settings.page_size
        self.max_search_results = settings.max_search_results

    def default_headers(self) -> dict[str, str]:
        headers = super().default_headers()
        headers["x-api-key"] = self.api_key
        return headers

    async def search_mods(
        self,
        sort: SortStrategy,
        index: int = 0,
        page_size: int | None = None,
        game_version_type_id: int = 0,
    ) -> SearchModsResponse:
        """Fetch one page of addons for a sort order and optional game version filter."""
        params = {
            "gameId": GAME_ID_WOW,
            "index": index,
            "pageSize": page_size or self.page_size,
            "sortField": sort.field,
            "sortOrder": "desc",
        }
        if game_version_type_id > 0:
            params["gameVersionTypeId"] = game_version_type_id

        data = await self.fetch_json("/v1/mods/search", params=params)
        try:
            return SearchModsResponse.model_validate(data)
        except ValidationError as e:
            raise FatalError(f"unexpected search response: {e}") from e

    async def iter_pages(self, sort: SortStrategy, game_version_type_id: int = 0):
        """Yield pages of one sort order until exhausted or the result cap is reached."""
        fetched = 0
        index = 0

        while True:
            if index > 0:
                await self._sleep(self.rate_limit_delay)

            page = await self.search_mods(sort, index, self.page_size, game_version_type_id)
            fetched += len(page.data)
            yield page.data

            total = page.pagination.total_count
            if len(page.data) < self.page_size or (total and index + self.page_size >= total):
                break

            if index + self.page_size >= self.max_search_results:
                logger.info(
                    f"Reached API result limit for {sort.name}: fetched {fetched} "
                    f"of {total}"
                )
                break

            index += self.page_size

    async def fetch_with_sort(self, sort: SortStrategy, game_version_type_id: int = 0) -> list[Mod]:
        """All addons reachable through one sort order."""
        mods: list[Mod] = []
        async for page in self.iter_pages(sort, game_version_type_id):
            mods.extend(page)
        return mods

    async def get_categories(self) -> list[Category]:
        """Fetch all WoW addon categories."""
        data = await self.fetch_json("/v1/categories", params={"gameId": GAME_ID_WOW})
        try:
            return CategoriesResponse.model_validate(data).data
        except ValidationError as e:
            raise FatalError(f"unexpected categories response: {e}") from e

"""Decoded CurseForge API payloads.

Only the fields the pipeline consumes are declared; everything else in the
upstream response is ignored.
"""
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _UpstreamModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Category(_UpstreamModel):
    """Addon category."""
    id: int
    name: str
    slug: str = ""
    icon_url: str | None = Field(default=None, alias="iconUrl")
    parent_id: int = Field(default=0, alias="parentCategoryId")

    @field_validator("slug", mode="before")
    @classmethod
    def _null_slug(cls, value):
        return "" if value is None else value

    @field_validator("parent_id", mode="before")
    @classmethod
    def _null_parent(cls, value):
        return 0 if value is None else value


class Author(_UpstreamModel):
    id: int
    name: str


class Logo(_UpstreamModel):
    thumbnail_url: str | None = Field(default=None, alias="thumbnailUrl")


class ModFile(_UpstreamModel):
    """One released file of an addon."""
    id: int = 0
    file_date: datetime | None = Field(default=None, alias="fileDate")
    game_versions: list[str] = Field(default_factory=list, alias="gameVersions")

    @field_validator("game_versions", mode="before")
    @classmethod
    def _null_list(cls, value):
        return [] if value is None else value


class Mod(_UpstreamModel):
    """A CurseForge addon as returned by the search endpoint."""

    id: int
    name: str
    slug: str
    summary: str = ""
    download_count: int = Field(default=0, alias="downloadCount")
    thumbs_up_count: int = Field(default=0, alias="thumbsUpCount")
    rating: float = 0.0
    popularity_rank: int | None = Field(default=None, alias="popularityRank")
    date_created: datetime | None = Field(default=None, alias="dateCreated")
    date_modified: datetime | None = Field(default=None, alias="dateModified")
    categories: list[Category] = Field(default_factory=list)
    authors: list[Author] = Field(default_factory=list)
    logo: Logo | None = None
    latest_files: list[ModFile] = Field(default_factory=list, alias="latestFiles")

    @field_validator("download_count", "thumbs_up_count", mode="before")
    @classmethod
    def _truncate_counts(cls, value):
        # The API reports download counts as floats, and sometimes null
        if value is None:
            return 0
        if isinstance(value, float):
            return int(value)
        return value

    @field_validator("rating", mode="before")
    @classmethod
    def _null_rating(cls, value):
        return 0.0 if value is None else value

    @field_validator("summary", mode="before")
    @classmethod
    def _null_summary(cls, value):
        return "" if value is None else value

    @field_validator("categories", "authors", "latest_files", mode="before")
    @classmethod
    def _null_list(cls, value):
        return [] if value is None else value

    @property
    def primary_author(self) -> Author | None:
        return self.authors[0] if self.authors else None

    @property
    def logo_url(self) -> str | None:
        return self.logo.thumbnail_url if self.logo else None

    @property
    def category_ids(self) -> list[int]:
        return [c.id for c in self.categories]

    @property
    def primary_category_id(self) -> int | None:
        return self.categories[0].id if self.categories else None

    @property
    def latest_file_date(self) -> datetime | None:
        return self.latest_files[0].file_date if self.latest_files else None

    @property
    def game_versions(self) -> list[str]:
        """Unique game versions across the latest files, sorted."""
        versions = set()
        for f in self.latest_files:
            versions.update(f.game_versions)
        return sorted(versions)


class Pagination(_UpstreamModel):
    index: int = 0
    page_size: int = Field(default=0, alias="pageSize")
    result_count: int = Field(default=0, alias="resultCount")
    total_count: int = Field(default=0, alias="totalCount")


class SearchModsResponse(_UpstreamModel):
    """Response from /v1/mods/search."""
    data: list[Mod] = Field(default_factory=list)
    pagination: Pagination = Field(default_factory=Pagination)


class CategoriesResponse(_UpstreamModel):
    """Response from /v1/categories."""
    data: list[Category] = Field(default_factory=list)

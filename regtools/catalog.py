"""
Paged, searchable views over a registry's repositories and tags.

The registry itself has no useful search or paging, so the full catalog (or
tag list) is fetched, filtered, and sliced here.
"""

import asyncio
import logging
import math
from collections.abc import Sequence
from typing import Final

from regtools.client import RegistryClient
from regtools.models import ImageInfo
from regtools.models import PaginatedResult
from regtools.models import RepositoryInfo
from regtools.models import TagInfo
from utils.errors import RegistryError

logger = logging.getLogger(__name__)

DEFAULT_PAGE: Final[int] = 1
DEFAULT_PAGE_SIZE: Final[int] = 20
MAX_PAGE_SIZE: Final[int] = 100
DEFAULT_CONCURRENCY: Final[int] = 10

# Only A-Z are folded, matching a byte-wise comparison rather than full Unicode casing
_ASCII_LOWER: Final = str.maketrans("ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz")


def ascii_lower(value: str) -> str:
    return value.translate(_ASCII_LOWER)


def matches_search(value: str, search: str | None) -> bool:
    """
    True if search is empty, or is a case-insensitive substring of value
    """
    if not search:
        return True
    return ascii_lower(search) in ascii_lower(value)


def filter_names(names: Sequence[str], search: str | None) -> list[str]:
    """Keeps the names matching the search, preserving their order"""
    return [name for name in names if matches_search(name, search)]


def _to_int(value: int | str | None) -> int | None:
    if isinstance(value, bool):
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def coerce_page(value: int | str | None) -> int:
    """
    Any page below 1, or anything which isn't a number, becomes page 1
    """
    page = _to_int(value)
    if page is None or page < 1:
        return DEFAULT_PAGE
    return page


def coerce_page_size(value: int | str | None) -> int:
    """
    Any size outside 1 to 100, or anything which isn't a number, becomes 20
    """
    page_size = _to_int(value)
    if page_size is None or page_size < 1 or page_size > MAX_PAGE_SIZE:
        return DEFAULT_PAGE_SIZE
    return page_size


def paginate(
    items: Sequence[str],
    page: int | str | None = DEFAULT_PAGE,
    page_size: int | str | None = DEFAULT_PAGE_SIZE,
    search: str | None = None,
) -> PaginatedResult[str]:
    """
    Filters items by search and returns the requested page of what remains.

    A page past the end is returned empty rather than raising.
    """
    filtered = filter_names(items, search)
    total = len(filtered)
    page = coerce_page(page)
    page_size = coerce_page_size(page_size)
    total_pages = math.ceil(total / page_size)

    start = min(max((page - 1) * page_size, 0), total)
    end = min(max(start + page_size, 0), total)

    return PaginatedResult(
        data=filtered[start:end],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


async def _repository_info_or_none(
    client: RegistryClient,
    repository: str,
    semaphore: asyncio.Semaphore,
) -> RepositoryInfo | None:
    async with semaphore:
        try:
            return await client.get_repository_info(repository)
        except RegistryError as e:
            logger.warning(f"Skipping repository {repository}: {e}")
            return None


async def list_repositories(
    client: RegistryClient,
    page: int | str | None = DEFAULT_PAGE,
    page_size: int | str | None = DEFAULT_PAGE_SIZE,
    search: str | None = None,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> PaginatedResult[RepositoryInfo]:
    """
    Returns one page of repositories, each with its tags.

    Repositories whose tags cannot be read (deleted while listing, no access...)
    are left out of the page, and counted in skipped.  total still counts them.
    """
    catalog = await client.get_catalog()
    names = paginate(catalog.repositories, page, page_size, search)

    semaphore = asyncio.BoundedSemaphore(max(1, min(concurrency, names.page_size)))
    results = await asyncio.gather(
        *[_repository_info_or_none(client, name, semaphore) for name in names.data],
    )
    repos = [info for info in results if info is not None]
    skipped = len(results) - len(repos)
    if skipped:
        logger.info(f"{skipped} of {len(results)} repositories on page {names.page} could not be read")

    return PaginatedResult(
        data=repos,
        total=names.total,
        page=names.page,
        page_size=names.page_size,
        total_pages=names.total_pages,
        skipped=skipped,
    )


async def list_tags(
    client: RegistryClient,
    repository: str,
    page: int | str | None = DEFAULT_PAGE,
    page_size: int | str | None = DEFAULT_PAGE_SIZE,
    search: str | None = None,
) -> PaginatedResult[str]:
    """Returns one page of the tags of a repository"""
    tags = await client.get_tags(repository)
    return paginate(tags.tags, page, page_size, search)


async def get_image_info(client: RegistryClient, repository: str, tag: str) -> ImageInfo:
    return await client.get_image_info(repository, tag)


async def describe_tag(client: RegistryClient, repository: str, tag: str) -> TagInfo:
    """
    Summarises a tag: its digest, platform, size, layer count and creation time
    """
    return TagInfo.from_image_info(await client.get_image_info(repository, tag))

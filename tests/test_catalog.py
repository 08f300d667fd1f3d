import math

import pytest
from pytest_httpx import HTTPXMock

from regtools.catalog import ascii_lower
from regtools.catalog import coerce_page
from regtools.catalog import coerce_page_size
from regtools.catalog import describe_tag
from regtools.catalog import filter_names
from regtools.catalog import list_repositories
from regtools.catalog import list_tags
from regtools.catalog import paginate
from regtools.client import DOCKER_MANIFEST_MEDIA_TYPE
from regtools.client import RegistryClient
from regtools.models import RepositoryInfo
from utils.errors import UnexpectedStatusError

MOCK_URL = "https://registry.test"


def add_catalog(httpx_mock: HTTPXMock, repositories: list[str]) -> None:
    httpx_mock.add_response(method="GET", url=f"{MOCK_URL}/v2/_catalog", json={"repositories": repositories})


def add_tags(httpx_mock: HTTPXMock, repository: str, tags: list[str]) -> None:
    httpx_mock.add_response(
        method="GET",
        url=f"{MOCK_URL}/v2/{repository}/tags/list",
        json={"name": repository, "tags": tags},
    )


class TestFilter:
    def test_empty_search_keeps_everything(self):
        names = ["b", "a", "c"]
        assert filter_names(names, "") == names
        assert filter_names(names, None) == names

    def test_case_insensitive_substring(self):
        names = ["App-A", "lib-c", "my-APP", "other"]
        assert filter_names(names, "aPp") == ["App-A", "my-APP"]

    def test_order_preserved(self):
        names = ["z-app", "a-app", "m-app"]
        assert filter_names(names, "app") == names

    def test_only_ascii_is_folded(self):
        assert ascii_lower("ÉCOLE-App") == "École-app"
        assert filter_names(["école"], "ÉCOLE") == []
        assert filter_names(["ÉCOLE-app"], "école") == []
        assert filter_names(["ÉCOLE-app"], "ÉCOLE-APP") == ["ÉCOLE-app"]


class TestCoercion:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(1, 1), (5, 5), (0, 1), (-3, 1), ("7", 7), ("abc", 1), ("", 1), (None, 1)],
    )
    def test_page(self, value, expected: int):
        assert coerce_page(value) == expected

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(1, 1), (20, 20), (100, 100), (0, 20), (-1, 20), (101, 20), ("50", 50), ("lots", 20), (None, 20)],
    )
    def test_page_size(self, value, expected: int):
        assert coerce_page_size(value) == expected


class TestPaginate:
    @pytest.mark.parametrize("total", [0, 1, 19, 20, 21, 99, 100, 101, 250])
    @pytest.mark.parametrize("page_size", [1, 7, 20, 100])
    def test_pages_cover_everything_once(self, total: int, page_size: int):
        items = [f"repo-{i}" for i in range(total)]

        first = paginate(items, 1, page_size)
        assert first.total == total
        assert first.total_pages == math.ceil(total / page_size)

        seen = []
        for page in range(1, first.total_pages + 1):
            seen.extend(paginate(items, page, page_size).data)
        assert seen == items

    def test_no_items(self):
        result = paginate([], 1, 20)

        assert result.data == []
        assert result.total == 0
        assert result.total_pages == 0

    def test_page_past_end_is_empty(self):
        items = ["a", "b", "c"]

        result = paginate(items, 5, 2)

        assert result.data == []
        assert result.total == 3
        assert result.total_pages == 2
        assert result.page == 5

    def test_invalid_values_are_clamped(self):
        items = [str(i) for i in range(30)]

        result = paginate(items, 0, 101)

        assert result.page == 1
        assert result.page_size == 20
        assert result.data == items[:20]

    def test_total_counts_filtered_items(self):
        result = paginate(["app-a", "app-b", "lib-c"], 1, 1, "app")

        assert result.data == ["app-a"]
        assert result.total == 2
        assert result.total_pages == 2

    def test_as_dict(self):
        assert paginate(["a", "b"], 2, 1).as_dict() == {
            "data": ["b"],
            "total": 2,
            "page": 2,
            "page_size": 1,
            "total_pages": 2,
            "skipped": 0,
        }


class TestListRepositories:
    @pytest.mark.asyncio
    async def test_search_and_page(self, httpx_mock: HTTPXMock, client: RegistryClient):
        add_catalog(httpx_mock, ["app-a", "app-b", "lib-c"])
        add_tags(httpx_mock, "app-a", ["latest", "v1"])

        result = await list_repositories(client, page=1, page_size=1, search="app")

        assert result.data == [RepositoryInfo(name="app-a", tags=["latest", "v1"])]
        assert result.data[0].tag_count == 2
        assert result.total == 2
        assert result.total_pages == 2
        assert result.skipped == 0

    @pytest.mark.asyncio
    async def test_unreadable_repositories_are_skipped(self, httpx_mock: HTTPXMock, client: RegistryClient):
        add_catalog(httpx_mock, ["a", "b", "c"])
        add_tags(httpx_mock, "a", ["1"])
        httpx_mock.add_response(
            method="GET",
            url=f"{MOCK_URL}/v2/b/tags/list",
            status_code=404,
            text="NAME_UNKNOWN",
        )
        add_tags(httpx_mock, "c", ["2", "3"])

        result = await list_repositories(client)

        assert [r.name for r in result.data] == ["a", "c"]
        assert result.total == 3
        assert result.skipped == 1
        assert result.as_dict()["data"][1] == {"name": "c", "tags": ["2", "3"], "tag_count": 2}

    @pytest.mark.asyncio
    async def test_enrichment_keeps_page_order(self, httpx_mock: HTTPXMock, client: RegistryClient):
        names = [f"repo-{i}" for i in range(15)]
        add_catalog(httpx_mock, names)
        for name in names:
            add_tags(httpx_mock, name, ["latest"])

        result = await list_repositories(client, page="1", page_size="50", concurrency=3)

        assert [r.name for r in result.data] == names

    @pytest.mark.asyncio
    async def test_catalog_failure_propagates(self, httpx_mock: HTTPXMock, client: RegistryClient):
        httpx_mock.add_response(method="GET", url=f"{MOCK_URL}/v2/_catalog", status_code=500, text="down")

        with pytest.raises(UnexpectedStatusError):
            await list_repositories(client)

    @pytest.mark.asyncio
    async def test_page_past_end_makes_no_tag_requests(self, httpx_mock: HTTPXMock, client: RegistryClient):
        add_catalog(httpx_mock, ["a", "b"])

        result = await list_repositories(client, page=3, page_size=1)

        assert result.data == []
        assert result.total_pages == 2
        assert len(httpx_mock.get_requests()) == 1


class TestListTags:
    @pytest.mark.asyncio
    async def test_list_tags(self, httpx_mock: HTTPXMock, client: RegistryClient):
        add_tags(httpx_mock, "library/app", ["v1.0", "v1.1", "latest", "V2.0"])

        result = await list_tags(client, "library/app", page=1, page_size=2, search="v")

        assert result.data == ["v1.0", "v1.1"]
        assert result.total == 3
        assert result.total_pages == 2


class TestDescribeTag:
    @pytest.mark.asyncio
    async def test_describe_tag(self, httpx_mock: HTTPXMock, client: RegistryClient):
        httpx_mock.add_response(
            method="GET",
            url=f"{MOCK_URL}/v2/library/app/manifests/v1",
            json={
                "schemaVersion": 2,
                "config": {"mediaType": "x", "size": 10, "digest": "sha256:cfg"},
                "layers": [{"mediaType": "y", "size": 90, "digest": "sha256:l1"}],
            },
            headers={"Content-Type": DOCKER_MANIFEST_MEDIA_TYPE, "Docker-Content-Digest": "sha256:abc"},
        )
        httpx_mock.add_response(
            method="GET",
            url=f"{MOCK_URL}/v2/library/app/blobs/sha256:cfg",
            json={"os": "linux", "architecture": "arm64", "created": "2024-01-02T03:04:05Z"},
        )

        tag = await describe_tag(client, "library/app", "v1")

        assert tag.as_dict() == {
            "name": "v1",
            "digest": "sha256:abc",
            "os": "linux",
            "arch": "arm64",
            "size": 100,
            "layer_count": 1,
            "created": "2024-01-02T03:04:05Z",
        }

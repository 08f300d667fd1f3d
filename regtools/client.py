"""
An async client for the read and delete surface of a Docker / OCI registry
(the Registry HTTP API v2).

Manifest requests accept both single platform manifests and multi-platform
indexes, but callers only ever see a single platform Manifest: an index is
resolved to its linux/amd64 entry, or to its first entry when there is none.
"""

import logging
from collections.abc import Mapping
from http import HTTPStatus
from typing import Any
from typing import Self
from typing import cast

import httpx

from regtools.connection import ConnectionLookup
from regtools.connection import RegistryConnection
from regtools.connection import resolve_active_connection
from regtools.models import Catalog
from regtools.models import CatalogResponse
from regtools.models import Descriptor
from regtools.models import DockerManifestList
from regtools.models import DockerManifestV2
from regtools.models import ImageConfig
from regtools.models import ImageInfo
from regtools.models import Manifest
from regtools.models import ManifestIndex
from regtools.models import ManifestResponse
from regtools.models import OCIImageIndex
from regtools.models import OCIManifest
from regtools.models import RepositoryInfo
from regtools.models import TagList
from regtools.models import TagsResponse
from utils.errors import DecodeError
from utils.errors import NotFoundError
from utils.errors import RegistryConnectionError
from utils.errors import UnexpectedStatusError

# Constants for media types and the HTTP Accept header
OCI_INDEX_MEDIA_TYPE = "application/vnd.oci.image.index.v1+json"
DOCKER_MANIFEST_LIST_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.list.v2+json"
OCI_MANIFEST_MEDIA_TYPE = "application/vnd.oci.image.manifest.v1+json"
DOCKER_MANIFEST_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.v2+json"

MANIFEST_LIST_MEDIA_TYPES = {
    OCI_INDEX_MEDIA_TYPE,
    DOCKER_MANIFEST_LIST_MEDIA_TYPE,
}

# Order matters, single platform manifests are preferred
ACCEPT_HEADER = (
    f"{DOCKER_MANIFEST_MEDIA_TYPE}, "
    f"{OCI_MANIFEST_MEDIA_TYPE}, "
    f"{OCI_INDEX_MEDIA_TYPE}, "
    f"{DOCKER_MANIFEST_LIST_MEDIA_TYPE}"
)

DIGEST_HEADER = "Docker-Content-Digest"

DEFAULT_TIMEOUT = 30.0

PREFERRED_OS = "linux"
PREFERRED_ARCHITECTURE = "amd64"

logger = logging.getLogger(__name__)


def is_multi_arch_media_type(media_type: str) -> bool:
    """
    True if the media type is an OCI index or a Docker manifest list
    """
    return media_type in MANIFEST_LIST_MEDIA_TYPES


def format_platform(platform_data: Mapping[str, Any]) -> str:
    """Helper to format platform dictionary into a string."""
    os = platform_data.get("os") or "unknown"
    arch = platform_data.get("architecture") or "unknown"
    variant = platform_data.get("variant") or ""
    if variant:
        return f"{os}/{arch}/{variant}"
    return f"{os}/{arch}"


def select_platform_descriptor(index: ManifestIndex) -> Descriptor:
    """
    Picks the entry of an index to resolve to: linux/amd64 if present,
    otherwise the first entry.
    """
    for descriptor in index.descriptors:
        # "platform": null is treated like a missing platform
        platform = descriptor.get("platform") or {}
        if platform.get("os") == PREFERRED_OS and platform.get("architecture") == PREFERRED_ARCHITECTURE:
            return descriptor
    if index.descriptors:
        return index.descriptors[0]
    raise NotFoundError("no suitable manifest found in manifest list")


def parse_manifest_response(media_type: str, digest: str, body: Any) -> ManifestResponse:
    """
    Turns a decoded manifest body into either a Manifest or a ManifestIndex,
    depending on the media type the registry reported.
    """
    if not isinstance(body, dict):
        raise DecodeError(f"Manifest body is not a JSON object: {body!r}")

    try:
        if is_multi_arch_media_type(media_type):
            index = cast(OCIImageIndex | DockerManifestList, body)
            descriptors = list(index["manifests"] or [])
            for descriptor in descriptors:
                if not descriptor.get("digest"):
                    raise DecodeError(f"Manifest list entry without a digest: {descriptor!r}")
            return ManifestIndex(media_type=media_type, descriptors=descriptors)

        manifest = cast(OCIManifest | DockerManifestV2, body)
        config = manifest["config"]
        if not config.get("digest"):
            raise DecodeError(f"Manifest config without a digest: {config!r}")
        return Manifest(
            schema_version=manifest.get("schemaVersion", 0),
            media_type=media_type,
            digest=digest,
            config=config,
            layers=list(manifest.get("layers") or []),
        )
    except (AttributeError, KeyError, TypeError) as e:
        raise DecodeError(f"Malformed manifest ({media_type}): {e}") from e


def _decode_json(resp: httpx.Response, what: str) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        raise DecodeError(f"Invalid JSON in {what} response: {e}") from e


def _response_media_type(resp: httpx.Response, parsed_json: Mapping[str, Any]) -> str:
    media_type = (resp.headers.get("Content-Type") or "").split(";")[0].strip()
    if not media_type:
        media_type = parsed_json.get("mediaType") or ""
    return media_type


class RegistryClient:
    """
    A client for interacting with a container registry via HTTP.

    Holds nothing but its transport and credentials, so one may be created per
    request or shared between requests.
    """

    def __init__(self, connection: RegistryConnection, *, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.connection = connection
        self.base_url = connection.base_url
        # No Authorization header at all unless both username and password are set
        auth = httpx.BasicAuth(connection.username, connection.password) if connection.has_credentials else None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=auth,
            verify=connection.verify_tls,
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit the async context manager and close the client."""
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        logger.debug(f"Requesting {method} {self.base_url}{path}")
        try:
            return await self._client.request(method, path, headers=headers)
        except httpx.TransportError as e:
            raise RegistryConnectionError(f"{operation} failed, connection error: {e}") from e

    @staticmethod
    def _expect(resp: httpx.Response, operation: str, accepted: tuple[int, ...] = (HTTPStatus.OK,)) -> None:
        if resp.status_code not in accepted:
            raise UnexpectedStatusError(operation, resp.status_code, resp.text)

    async def check_connection(self) -> None:
        """
        Checks the base endpoint answers like a registry.  A 401 counts as
        success, it still proves there is a registry there, wanting credentials.
        """
        resp = await self._request("GET", "/v2/", "check connection")
        self._expect(resp, "check connection", (HTTPStatus.OK, HTTPStatus.UNAUTHORIZED))

    async def get_catalog(self) -> Catalog:
        """
        Lists every repository in the registry, in the order it returns them
        """
        resp = await self._request("GET", "/v2/_catalog", "get catalog")
        self._expect(resp, "get catalog")
        data = cast(CatalogResponse, _decode_json(resp, "catalog"))
        try:
            return Catalog(repositories=list(data["repositories"] or []))
        except (KeyError, TypeError) as e:
            raise DecodeError(f"Malformed catalog response: {e}") from e

    async def get_tags(self, repository: str) -> TagList:
        """
        Lists the tags of a repository, in the order the registry returns them
        """
        resp = await self._request("GET", f"/v2/{repository}/tags/list", "get tags")
        self._expect(resp, "get tags")
        data = cast(TagsResponse, _decode_json(resp, "tags"))
        try:
            return TagList(name=data.get("name") or repository, tags=list(data.get("tags") or []))
        except (AttributeError, TypeError) as e:
            raise DecodeError(f"Malformed tags response for {repository}: {e}") from e

    async def fetch_manifest(self, repository: str, reference: str) -> ManifestResponse:
        """
        Fetches a manifest or index by tag or digest, without resolving it.

        Args:
            repository: The name of the repository (e.g., 'library/nginx').
            reference: The tag or digest (e.g., 'latest' or 'sha256:...').
        """
        resp = await self._request(
            "GET",
            f"/v2/{repository}/manifests/{reference}",
            "get manifest",
            headers={"Accept": ACCEPT_HEADER},
        )
        self._expect(resp, "get manifest")

        parsed_json = _decode_json(resp, "manifest")
        media_type = _response_media_type(resp, parsed_json if isinstance(parsed_json, dict) else {})
        return parse_manifest_response(media_type, resp.headers.get(DIGEST_HEADER, ""), parsed_json)

    async def get_manifest(self, repository: str, reference: str) -> Manifest:
        """
        Fetches the single platform manifest for a tag or digest, resolving a
        multi-platform index with one further request.
        """
        response = await self.fetch_manifest(repository, reference)
        if isinstance(response, Manifest):
            return response

        descriptor = select_platform_descriptor(response)
        digest = descriptor["digest"]
        logger.debug(
            f"{repository}:{reference} is multi-platform, using {digest} "
            f"({format_platform(descriptor.get('platform') or {})})",
        )

        resolved = await self.fetch_manifest(repository, digest)
        # Registries do not nest lists, so one hop is enough
        if isinstance(resolved, ManifestIndex):
            raise NotFoundError(f"no suitable manifest found: {repository}@{digest} is also a manifest list")
        return resolved

    async def get_image_config(self, repository: str, digest: str) -> ImageConfig:
        """
        Fetches the image config blob, returned as the registry sent it
        """
        resp = await self._request("GET", f"/v2/{repository}/blobs/{digest}", "get config")
        self._expect(resp, "get config")
        data = _decode_json(resp, "config")
        if not isinstance(data, dict):
            raise DecodeError(f"Config blob {digest} is not a JSON object")
        return cast(ImageConfig, data)

    async def delete_manifest(self, repository: str, digest: str) -> None:
        """
        Deletes a manifest.  Registries only allow this by digest, not by tag.
        """
        resp = await self._request("DELETE", f"/v2/{repository}/manifests/{digest}", "delete manifest")
        self._expect(resp, "delete manifest", (HTTPStatus.OK, HTTPStatus.ACCEPTED))

    async def delete_image(self, repository: str, reference: str) -> str:
        """
        Resolves a tag (or digest) to its manifest digest and deletes that.
        Returns the digest which was deleted.
        """
        manifest = await self.get_manifest(repository, reference)
        logger.info(f"Deleting {repository}:{reference} ({manifest.digest})")
        await self.delete_manifest(repository, manifest.digest)
        return manifest.digest

    async def get_image_info(self, repository: str, tag: str) -> ImageInfo:
        manifest = await self.get_manifest(repository, tag)
        config = await self.get_image_config(repository, manifest.config["digest"])
        return ImageInfo(name=repository, tag=tag, manifest=manifest, config=config)

    async def get_repository_info(self, repository: str) -> RepositoryInfo:
        tags = await self.get_tags(repository)
        return RepositoryInfo(name=repository, tags=tags.tags)

    async def close(self) -> None:
        """Closes the underlying HTTP client."""
        await self._client.aclose()


def client_from_lookup(lookup: ConnectionLookup, *, timeout: float = DEFAULT_TIMEOUT) -> RegistryClient:
    """
    Builds a client for the currently active connection, raising NotFoundError
    if there is none
    """
    return RegistryClient(resolve_active_connection(lookup), timeout=timeout)

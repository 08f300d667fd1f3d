from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Generic
from typing import Literal
from typing import NotRequired
from typing import TypedDict
from typing import TypeVar

Annotations = Mapping[str, str]  # typically keys/values are strings

# --------------------------
# Platform (OCI image-index keys)
# --------------------------
Platform = TypedDict(
    "Platform",
    {
        "architecture": str,
        "os": str,
        "os.version": NotRequired[str],
        "os.features": NotRequired[Sequence[str]],
        "variant": NotRequired[str],
        "features": NotRequired[Sequence[str]],
    },
)


# --------------------------
# Descriptor (OCI descriptor)
# --------------------------
class Descriptor(TypedDict, total=False):
    """
    A content descriptor, used for configs, layers and the entries of an index.
    See: https://github.com/opencontainers/image-spec/blob/main/descriptor.md
    """

    mediaType: str
    size: int
    digest: str
    urls: NotRequired[Sequence[str]]
    annotations: NotRequired[Mapping[str, str]]
    platform: NotRequired[Platform]
    artifactType: NotRequired[str]


# --------------------------
# OCI image index
# --------------------------
class OCIImageIndex(TypedDict):
    """
    application/vnd.oci.image.index.v1+json
    """

    schemaVersion: int
    mediaType: NotRequired[Literal["application/vnd.oci.image.index.v1+json"]]
    manifests: Sequence[Descriptor]
    annotations: NotRequired[Mapping[str, str]]


# --------------------------
# Docker manifest list
# --------------------------
class DockerManifestList(TypedDict):
    """
    application/vnd.docker.distribution.manifest.list.v2+json
    """

    schemaVersion: int
    mediaType: NotRequired[Literal["application/vnd.docker.distribution.manifest.list.v2+json"]]
    manifests: Sequence[Descriptor]
    annotations: NotRequired[Annotations]


# --------------------------
# OCI manifest
# --------------------------
class OCIManifest(TypedDict):
    """
    application/vnd.oci.image.manifest.v1+json
    See: https://github.com/opencontainers/image-spec/blob/main/manifest.md
    """

    schemaVersion: int
    mediaType: NotRequired[Literal["application/vnd.oci.image.manifest.v1+json"]]
    config: Descriptor
    layers: Sequence[Descriptor]
    annotations: NotRequired[Annotations]


class DockerManifestV2(TypedDict):
    """
    application/vnd.docker.distribution.manifest.v2+json
    This is similar to an OCIManifest in practice but historically different constants.
    """

    schemaVersion: int
    mediaType: NotRequired[Literal["application/vnd.docker.distribution.manifest.v2+json"]]
    config: Descriptor
    layers: Sequence[Descriptor]
    annotations: NotRequired[Annotations]


# --------------------------
# Catalog and tag listings
# --------------------------
class CatalogResponse(TypedDict):
    """GET /v2/_catalog"""

    repositories: list[str]


class TagsResponse(TypedDict):
    """GET /v2/<name>/tags/list"""

    name: str
    tags: list[str] | None


# --------------------------
# Image config blob
# --------------------------
# Docker writes these keys capitalised, they are kept as-is
class ContainerConfig(TypedDict, total=False):
    Hostname: str
    Domainname: str
    User: str
    ExposedPorts: Mapping[str, Mapping]
    Env: Sequence[str]
    Cmd: Sequence[str]
    Image: str
    Volumes: Mapping[str, Mapping]
    WorkingDir: str
    Entrypoint: Sequence[str]
    Labels: Mapping[str, str]


class HistoryEntry(TypedDict, total=False):
    created: str
    created_by: str
    empty_layer: bool
    comment: str


class RootFS(TypedDict, total=False):
    type: str
    diff_ids: Sequence[str]


class ImageConfig(TypedDict, total=False):
    """
    application/vnd.oci.image.config.v1+json, or the Docker equivalent.
    Passed through exactly as the registry returned it.
    """

    architecture: str
    os: str
    created: str
    author: str
    docker_version: str
    config: ContainerConfig
    history: Sequence[HistoryEntry]
    rootfs: RootFS


# --------------------------
# Results handed to callers
# --------------------------
@dataclass(slots=True)
class Catalog:
    repositories: list[str]

    def as_dict(self) -> dict[str, Any]:
        return {"repositories": list(self.repositories)}


@dataclass(slots=True)
class TagList:
    name: str
    tags: list[str]

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "tags": list(self.tags)}


@dataclass(slots=True)
class RepositoryInfo:
    name: str
    tags: list[str]

    @property
    def tag_count(self) -> int:
        return len(self.tags)

    def as_dict(self) -> dict[str, Any]:
        return {"name": self.name, "tags": list(self.tags), "tag_count": self.tag_count}


@dataclass(slots=True)
class Manifest:
    """
    A single platform image manifest.

    The digest is whatever the registry reported in Docker-Content-Digest,
    it is never computed from the body.
    """

    schema_version: int
    media_type: str
    digest: str
    config: Descriptor
    layers: list[Descriptor] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        """Size of the config blob plus every layer"""
        return (self.config.get("size") or 0) + sum(layer.get("size") or 0 for layer in self.layers)

    def as_dict(self) -> dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "mediaType": self.media_type,
            "config": dict(self.config),
            "layers": [dict(layer) for layer in self.layers],
            "digest": self.digest,
            "totalSize": self.total_size,
        }


@dataclass(slots=True)
class ManifestIndex:
    """
    A multi-platform envelope, either an OCI index or a Docker manifest list.
    Only ever seen inside the client, which resolves it to one Manifest.
    """

    media_type: str
    descriptors: list[Descriptor]


# What a manifest request can come back as
ManifestResponse = Manifest | ManifestIndex


@dataclass(slots=True)
class ImageInfo:
    name: str
    tag: str
    manifest: Manifest
    config: ImageConfig

    @property
    def digest(self) -> str:
        return self.manifest.digest

    @property
    def total_size(self) -> int:
        return self.manifest.total_size

    @property
    def layer_count(self) -> int:
        return len(self.manifest.layers)

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "tag": self.tag,
            "digest": self.digest,
            "manifest": self.manifest.as_dict(),
            "config": self.config,
            "total_size": self.total_size,
            "layer_count": self.layer_count,
        }


@dataclass(frozen=True, slots=True)
class TagInfo:
    """
    A one line summary of a tag, as shown in a tag listing
    """

    name: str
    digest: str
    os: str
    arch: str
    size: int
    layer_count: int
    created: str

    @classmethod
    def from_image_info(cls, info: ImageInfo) -> "TagInfo":
        return cls(
            name=info.tag,
            digest=info.digest,
            os=info.config.get("os") or "",
            arch=info.config.get("architecture") or "",
            size=info.total_size,
            layer_count=info.layer_count,
            created=info.config.get("created") or "",
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "digest": self.digest,
            "os": self.os,
            "arch": self.arch,
            "size": self.size,
            "layer_count": self.layer_count,
            "created": self.created,
        }


T = TypeVar("T")


@dataclass
class PaginatedResult(Generic[T]):
    """
    One page of a filtered listing.  total is counted after filtering but
    before slicing.  skipped counts items dropped from this page because they
    could not be fetched.
    """

    data: list[T]
    total: int
    page: int
    page_size: int
    total_pages: int
    skipped: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "data": [item.as_dict() if hasattr(item, "as_dict") else item for item in self.data],
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
            "total_pages": self.total_pages,
            "skipped": self.skipped,
        }

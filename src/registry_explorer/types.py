from typing_extensions import NotRequired, TypedDict
from typing import Any, Dict, List, Optional


class Platform(TypedDict):
    """Typed dict used to store platform of a manifest list entry."""

    architecture: str
    os: str
    variant: NotRequired[str]


class ManifestListEntry(TypedDict):
    """Typed dict used to store a single entry of a manifest list or image index."""

    mediaType: str
    size: int
    digest: str
    platform: NotRequired[Platform]


class ManifestList(TypedDict):
    """Typed dict used to store manifest list (image index) data."""

    schemaVersion: int
    mediaType: str
    manifests: List[ManifestListEntry]


class Descriptor(TypedDict):
    """Typed dict used to store a content descriptor, e.g. the config of a manifest."""

    mediaType: str
    size: int
    digest: str


class Manifest(TypedDict):
    """Typed dict used to store single-platform manifest data."""

    schemaVersion: int
    mediaType: str
    config: Descriptor
    layers: List[Descriptor]


class ImageConfig(TypedDict):
    """Typed dict used to store the fields of a config blob the explorer cares about."""

    architecture: str
    created: str
    os: NotRequired[str]


class RegistryErrorEntry(TypedDict):
    """Typed dict used to store one entry of a registry error payload."""

    code: str
    message: str
    detail: NotRequired[Dict[str, Any]]


class RegistryErrorPayload(TypedDict):
    """Typed dict used to store a registry error payload."""

    errors: List[RegistryErrorEntry]


class CatalogResponse(TypedDict):
    """Typed dict used to store the response of the catalog endpoint."""

    repositories: List[str]


class TagsResponse(TypedDict):
    """Typed dict used to store the response of the tags list endpoint."""

    name: str
    tags: Optional[List[str]]

import dataclasses
from datetime import datetime
from typing import Any, Mapping, Optional, Tuple, Union

from .exceptions import InvalidSettings, MalformedManifest

UNKNOWN_PLATFORM_VALUE = "unknown"


@dataclasses.dataclass(frozen=True)
class Platform:
    """Platform an image of a manifest list was built for."""

    os: str
    architecture: str
    variant: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Platform":
        """
        Create a Platform from the 'platform' object of a manifest list entry.

        Args:
            data (dict):
                Raw platform object.
        Returns (Platform):
            Parsed platform.
        Raises:
            MalformedManifest:
                If os or architecture is missing or if any of the fields isn't a string.
        """
        if not isinstance(data, dict):
            raise MalformedManifest("Manifest list entry platform is not an object")
        os_ = data.get("os")
        architecture = data.get("architecture")
        variant = data.get("variant")
        if not isinstance(os_, str) or not isinstance(architecture, str):
            raise MalformedManifest(
                "Manifest list entry platform is missing 'os' or 'architecture'"
            )
        if variant is not None and not isinstance(variant, str):
            raise MalformedManifest("Manifest list entry platform 'variant' is not a string")
        return cls(os=os_, architecture=architecture, variant=variant or None)

    @property
    def is_unknown(self) -> bool:
        """Whether this is the unknown/unknown placeholder used e.g. by attestation manifests."""
        return self.os == UNKNOWN_PLATFORM_VALUE and self.architecture == UNKNOWN_PLATFORM_VALUE

    def __str__(self) -> str:
        label = "{0}/{1}".format(self.os, self.architecture)
        if self.variant:
            label = "{0}/{1}".format(label, self.variant)
        return label


@dataclasses.dataclass(frozen=True)
class ManifestPlatformEntry:
    """One entry of a manifest list or image index."""

    digest: str
    platform: Optional[Platform] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ManifestPlatformEntry":
        """Create an entry from a raw manifest list entry."""
        if not isinstance(data, dict):
            raise MalformedManifest("Manifest list entry is not an object")
        digest = data.get("digest")
        if not isinstance(digest, str):
            raise MalformedManifest("Manifest list entry is missing 'digest'")
        platform = data.get("platform")
        return cls(
            digest=digest,
            platform=Platform.from_dict(platform) if platform is not None else None,
        )

    @property
    def has_platform(self) -> bool:
        """Whether the entry describes a real platform."""
        return self.platform is not None and not self.platform.is_unknown


@dataclasses.dataclass(frozen=True)
class NominalManifest:
    """Resolved single-platform image."""

    digest: str
    created: datetime
    architecture: str


@dataclasses.dataclass(frozen=True)
class MultiArchManifest:
    """Resolved manifest list or image index.

    Creation time comes from a representative platform and is missing when it couldn't be fetched.
    """

    digest: str
    architectures: Tuple[str, ...]
    created: Optional[datetime] = None


@dataclasses.dataclass(frozen=True)
class ErrorManifest:
    """Registry answered with an error payload instead of a manifest.

    'digest' holds the diagnostic string reported by the registry, not a content digest.
    """

    digest: str

    @property
    def detail(self) -> str:
        """Diagnostic string reported by the registry."""
        return self.digest


TagManifest = Union[NominalManifest, MultiArchManifest, ErrorManifest]


@dataclasses.dataclass(frozen=True)
class Tag:
    """Tag of an image together with its resolved manifest."""

    name: str
    manifest: TagManifest


@dataclasses.dataclass(frozen=True)
class Image:
    """Repository in the registry catalog."""

    name: str
    tag_count: int


@dataclasses.dataclass(frozen=True)
class ExplorerSettings:
    """Process-wide configuration, read once at startup."""

    registry_host: str
    registry_username: str
    registry_password: str
    explorer_username: str = ""
    explorer_password: str = ""
    listen_addr: str = "0.0.0.0"
    listen_port: int = 80
    static_dir: Optional[str] = None
    page_size: int = 15
    request_timeout: int = 10
    registry_retries: int = 0
    registry_verify: bool = True
    request_threads: int = 10

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ExplorerSettings":
        """
        Build settings from parsed arguments.

        Unknown keys are ignored and None values fall back to the defaults. Numeric values which
        came from environment variables are converted to integers.
        """
        fields = {f.name: f for f in dataclasses.fields(cls)}
        kwargs = {}
        for key, value in values.items():
            if key not in fields or value is None:
                continue
            if fields[key].type is int:
                try:
                    value = int(value)
                except ValueError:
                    raise InvalidSettings(
                        "Setting '{0}' must be an integer, got '{1}'".format(key, value)
                    )
            kwargs[key] = value
        return cls(**kwargs)

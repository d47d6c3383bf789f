from datetime import datetime, timezone
import logging
from typing import Any, List, Mapping, Optional, Tuple, cast

from dateutil.parser import isoparse

from .exceptions import MalformedManifest, RequestError
from .models import (
    ErrorManifest,
    ManifestPlatformEntry,
    MultiArchManifest,
    NominalManifest,
    TagManifest,
)
from .registry_client import RegistryClient
from .types import Manifest, ManifestList, RegistryErrorPayload
from .utils.misc import call_or_none

LOG = logging.getLogger("registry_explorer")

LIST_CONTENT_TYPE_MARKERS = ("manifest.list", "image.index")
REPRESENTATIVE_PLATFORM = ("linux", "amd64")

# Sorts entries without creation time after every real timestamp
OLDEST_POSSIBLE = datetime.min.replace(tzinfo=timezone.utc)


def config_digest(manifest: Manifest) -> str:
    """
    Get digest of the config blob referenced by a single-platform manifest.

    Args:
        manifest (dict):
            Decoded manifest.
    Returns (str):
        Digest of the config blob.
    Raises:
        MalformedManifest:
            If 'config' or 'config.digest' is missing or isn't of the expected type.
    """
    config = manifest.get("config") if isinstance(manifest, dict) else None
    if not isinstance(config, dict):
        raise MalformedManifest("Manifest doesn't contain a 'config' object")
    digest = config.get("digest")
    if not isinstance(digest, str):
        raise MalformedManifest("Manifest config doesn't contain a 'digest' string")
    return digest


def extract_error_revision(payload: RegistryErrorPayload) -> str:
    """
    Get the diagnostic string of a registry error payload, i.e. errors[0].detail.Revision.

    Args:
        payload (dict):
            Decoded error payload.
    Returns (str):
        The reported revision.
    Raises:
        MalformedManifest:
            If any step of the path is missing or has an unexpected type.
    """
    errors = payload.get("errors") if isinstance(payload, dict) else None
    if not isinstance(errors, list) or not errors:
        raise MalformedManifest("Registry response has neither a digest nor an 'errors' list")
    detail = errors[0].get("detail") if isinstance(errors[0], dict) else None
    if not isinstance(detail, dict):
        raise MalformedManifest("Registry error doesn't contain a 'detail' object")
    revision = detail.get("Revision")
    if not isinstance(revision, str):
        raise MalformedManifest("Registry error detail doesn't contain a 'Revision' string")
    return revision


def parse_created(value: Any) -> datetime:
    """
    Parse an RFC 3339 creation timestamp of an image config into an aware UTC datetime.

    Fractional seconds beyond microseconds are truncated. Timestamps without offset are UTC.
    """
    if not isinstance(value, str):
        raise MalformedManifest("Image config doesn't contain a 'created' string")
    try:
        created = isoparse(value)
    except (ValueError, OverflowError) as exc:
        raise MalformedManifest("Invalid creation time '{0}': {1}".format(value, exc)) from exc
    if created.tzinfo is None:
        return created.replace(tzinfo=timezone.utc)
    return created.astimezone(timezone.utc)


def platform_entries(manifest_list: ManifestList) -> List[ManifestPlatformEntry]:
    """
    Parse entries of a manifest list or image index.

    Args:
        manifest_list (dict):
            Decoded manifest list.
    Returns (list):
        Entries in their original order, including those without a real platform.
    """
    manifests = manifest_list.get("manifests") if isinstance(manifest_list, dict) else None
    if not isinstance(manifests, list):
        raise MalformedManifest("Manifest list doesn't contain a 'manifests' list")
    return [ManifestPlatformEntry.from_dict(entry) for entry in manifests]


def select_representative_entry(
    entries: List[ManifestPlatformEntry],
) -> Optional[ManifestPlatformEntry]:
    """
    Choose the manifest list entry whose image stands for the whole list.

    linux/amd64 is preferred, then the first entry with a real platform, then the first entry.

    Args:
        entries (list):
            Entries of a manifest list.
    Returns (ManifestPlatformEntry|None):
        Chosen entry, None for an empty list.
    """
    os_, architecture = REPRESENTATIVE_PLATFORM
    for entry in entries:
        if (
            entry.has_platform
            and entry.platform is not None
            and entry.platform.os == os_
            and entry.platform.architecture == architecture
        ):
            return entry
    for entry in entries:
        if entry.has_platform:
            return entry
    return entries[0] if entries else None


def created_sort_key(manifest: TagManifest) -> datetime:
    """Sort key which orders manifests by creation time, missing creation time being the oldest."""
    created = getattr(manifest, "created", None)
    return created if created is not None else OLDEST_POSSIBLE


class ManifestResolver:
    """Resolve tags into digest, creation time and architectures of their manifests."""

    def __init__(self, client: RegistryClient) -> None:
        """
        Initialize.

        Args:
            client (RegistryClient):
                Client used to communicate with the registry.
        """
        self.client = client

    def resolve(self, image: str, tag: str) -> TagManifest:
        """
        Resolve a tag of an image.

        Args:
            image (str):
                Repository of the tag.
            tag (str):
                Tag to resolve.
        Returns (NominalManifest|MultiArchManifest|ErrorManifest):
            Resolved manifest. ErrorManifest stands for a registry which refused to serve the
            manifest and isn't a failure of the resolution.
        Raises:
            RequestError:
                When a request failed.
            MalformedManifest:
                When a response doesn't contain a required field.
        """
        body, headers = cast(
            Tuple[Any, Mapping[str, str]],
            self.client.get_manifest(image, tag, return_headers=True),
        )
        content_type = headers.get("Content-Type") or ""
        digest = headers.get("Docker-Content-Digest")

        if any(marker in content_type for marker in LIST_CONTENT_TYPE_MARKERS):
            return self._resolve_multi_arch(image, tag, digest, body)
        return self._resolve_single_arch(image, tag, digest, body)

    def _resolve_single_arch(
        self, image: str, tag: str, digest: Optional[str], body: Any
    ) -> TagManifest:
        if digest is None:
            revision = extract_error_revision(body)
            LOG.info(
                "Registry returned an error for '{0}:{1}', revision '{2}'".format(
                    image, tag, revision
                )
            )
            return ErrorManifest(digest=revision)

        config = self.client.get_blob(image, config_digest(body))
        architecture = config.get("architecture") if isinstance(config, dict) else None
        if not isinstance(architecture, str):
            raise MalformedManifest("Image config doesn't contain an 'architecture' string")
        created = parse_created(config.get("created"))
        return NominalManifest(digest=digest, created=created, architecture=architecture)

    def _resolve_multi_arch(
        self, image: str, tag: str, digest: Optional[str], body: Any
    ) -> TagManifest:
        if digest is None:
            raise MalformedManifest(
                "Manifest list of '{0}:{1}' was returned without Docker-Content-Digest".format(
                    image, tag
                )
            )

        entries = platform_entries(body)
        representative = select_representative_entry(entries)
        if representative is None:
            LOG.warning("Manifest list of '{0}:{1}' is empty".format(image, tag))
            return ErrorManifest(digest=digest)

        architectures = tuple(str(entry.platform) for entry in entries if entry.has_platform)
        created = call_or_none(
            lambda: self._platform_created(image, representative.digest),
            "Getting creation time of '{0}@{1}'".format(image, representative.digest),
            (RequestError, MalformedManifest),
        )
        return MultiArchManifest(digest=digest, architectures=architectures, created=created)

    def _platform_created(self, image: str, digest: str) -> datetime:
        """Get creation time of a single-platform manifest referenced by a manifest list."""
        manifest = self.client.get_manifest(
            image, digest, accept=RegistryClient.SINGLE_MANIFEST_ACCEPT
        )
        config = self.client.get_blob(image, config_digest(manifest))
        return parse_created(config.get("created") if isinstance(config, dict) else None)

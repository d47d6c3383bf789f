import logging
from typing import List, Optional

from pubtools.pluggy import pm

from . import hooks  # noqa: F401
from .manifest_resolver import ManifestResolver, created_sort_key
from .models import ErrorManifest, Image, Tag, TagManifest
from .pagination import DEFAULT_PAGE_SIZE, Paginated, paginate
from .registry_client import RegistryClient
from .utils.misc import FData, log_step, run_in_parallel

LOG = logging.getLogger("registry_explorer")


def get_images(client: RegistryClient, threads: int = 10) -> List[Image]:
    """
    Get all repositories of the registry with their tag counts.

    Args:
        client (RegistryClient):
            Registry client.
        threads (int):
            Maximum number of parallel tag count requests.
    Returns (list):
        Repositories in catalog order.
    """
    names = client.catalog()
    counts = run_in_parallel(client.count_tags, [FData(args=[name]) for name in names], threads)
    return [Image(name=name, tag_count=counts[n]) for n, name in enumerate(names)]


def resolve_tags(
    resolver: ManifestResolver, image: str, tags: List[str], threads: Optional[int] = None
) -> List[TagManifest]:
    """
    Resolve tags of an image concurrently.

    The first failed resolution is re-raised and the whole result is lost.

    Args:
        resolver (ManifestResolver):
            Resolver used for every tag.
        image (str):
            Repository of the tags.
        tags (list):
            Tags to resolve.
        threads (int):
            Maximum number of concurrent resolutions, one per tag if not given.
    Returns (list):
        Resolved manifests in the order of tags.
    """
    if threads is None:
        threads = len(tags)
    results = run_in_parallel(
        resolver.resolve, [FData(args=[image, tag]) for tag in tags], threads=threads
    )
    return list(results.values())


def get_image_page(
    client: RegistryClient,
    resolver: ManifestResolver,
    image: str,
    page: Optional[int] = None,
    size: Optional[int] = None,
    default_size: int = DEFAULT_PAGE_SIZE,
) -> Paginated[Tag]:
    """
    Get one page of resolved tags of an image.

    The page is cut from the tag list as the registry returns it. Tags of the page are then
    sorted by creation time, newest first, tags without creation time last.

    Args:
        client (RegistryClient):
            Registry client.
        resolver (ManifestResolver):
            Manifest resolver.
        image (str):
            Repository to list.
        page (int):
            Requested page.
        size (int):
            Requested page size.
        default_size (int):
            Page size when none was requested.
    Returns (Paginated):
        Page of Tag objects.
    """
    tag_page = paginate(client.tags(image), page, size, default_size)
    manifests = resolve_tags(resolver, image, tag_page.data)
    tags = [Tag(name=name, manifest=manifest) for name, manifest in zip(tag_page, manifests)]
    tags.sort(key=lambda tag: created_sort_key(tag.manifest), reverse=True)
    return Paginated(
        page=tag_page.page,
        size=tag_page.size,
        total_element_count=tag_page.total_element_count,
        data=tags,
    )


@log_step("Delete tag")
def delete_tag(client: RegistryClient, image: str, digest: str) -> None:
    """
    Delete a manifest of an image.

    Every tag pointing to the manifest disappears with it.

    Args:
        client (RegistryClient):
            Registry client.
        image (str):
            Repository of the manifest.
        digest (str):
            Digest of the manifest.
    """
    LOG.info("Deleting '{0}@{1}'".format(image, digest))
    client.delete_manifest(image, digest)
    pm.hook.registry_manifest_deleted(image=image, digest=digest)


@log_step("Delete image tags")
def delete_all_image_tags(
    client: RegistryClient, resolver: ManifestResolver, image: str, threads: int = 10
) -> List[str]:
    """
    Delete every tag of an image.

    Tags are resolved first, then each distinct manifest is deleted once. Tags the registry
    returned an error for are skipped. The first failed deletion stops the operation.

    Args:
        client (RegistryClient):
            Registry client.
        resolver (ManifestResolver):
            Manifest resolver.
        image (str):
            Repository whose tags to delete.
        threads (int):
            Maximum number of concurrent tag resolutions.
    Returns (list):
        Deleted digests.
    """
    tags = client.tags(image)
    digests: List[str] = []
    for tag, manifest in zip(tags, resolve_tags(resolver, image, tags, threads)):
        if isinstance(manifest, ErrorManifest):
            LOG.warning(
                "Skipping '{0}:{1}', registry returned no manifest for it".format(image, tag)
            )
            continue
        if manifest.digest not in digests:
            digests.append(manifest.digest)

    for digest in digests:
        LOG.info("Deleting '{0}@{1}'".format(image, digest))
        client.delete_manifest(image, digest)

    pm.hook.registry_image_tags_deleted(image=image, digests=digests)
    return digests

import json
import logging
from typing import Any, Dict, List, Optional

from pubtools.pluggy import task_context

from .image_browser import resolve_tags
from .manifest_resolver import ManifestResolver, created_sort_key
from .models import ErrorManifest, MultiArchManifest, NominalManifest, Tag, TagManifest
from .registry_client import RegistryClient
from .serve import REGISTRY_ARGS, REQUIRED_REGISTRY_SETTINGS, parse_settings, settings_from_args

LOG = logging.getLogger("registry_explorer")

INSPECT_IMAGE_ARGS = {
    ("--image",): {
        "help": "Repository whose tags to inspect.",
        "required": True,
        "type": str,
    },
    ("--tags",): {
        "help": "Tags to inspect as CSV. All tags of the image are inspected if not given.",
        "required": False,
        "type": str,
    },
    **REGISTRY_ARGS,
}


def manifest_to_dict(manifest: TagManifest) -> Dict[str, Any]:
    """Convert a resolved manifest to a JSON serializable dictionary."""
    if isinstance(manifest, NominalManifest):
        return {
            "type": "nominal",
            "digest": manifest.digest,
            "created": manifest.created.isoformat(),
            "architecture": manifest.architecture,
        }
    if isinstance(manifest, MultiArchManifest):
        return {
            "type": "multi-arch",
            "digest": manifest.digest,
            "created": manifest.created.isoformat() if manifest.created else None,
            "architectures": list(manifest.architectures),
        }
    if isinstance(manifest, ErrorManifest):
        return {"type": "error", "digest": manifest.digest}
    raise TypeError("Unknown manifest type: {0}".format(type(manifest).__name__))


def inspect_image(
    client: RegistryClient, image: str, tags: Optional[List[str]] = None, threads: int = 10
) -> List[Tag]:
    """
    Resolve tags of an image.

    Args:
        client (RegistryClient):
            Registry client.
        image (str):
            Repository to inspect.
        tags (list):
            Tags to resolve, all tags of the image if not given.
        threads (int):
            Maximum number of concurrent tag resolutions.
    Returns (list):
        Resolved tags, newest first.
    """
    if tags is None:
        tags = client.tags(image)
    LOG.info("Inspecting {0} tag(s) of '{1}'".format(len(tags), image))

    manifests = resolve_tags(ManifestResolver(client), image, tags, threads)
    resolved = [Tag(name=name, manifest=manifest) for name, manifest in zip(tags, manifests)]
    resolved.sort(key=lambda tag: created_sort_key(tag.manifest), reverse=True)
    return resolved


def inspect_image_main(sysargs: Optional[List[str]] = None) -> None:
    """Entrypoint for printing resolved tags of an image as JSON."""
    logging.basicConfig(level=logging.INFO)

    args = parse_settings(INSPECT_IMAGE_ARGS, REQUIRED_REGISTRY_SETTINGS, sysargs)
    settings = settings_from_args(args)
    client = RegistryClient.from_settings(settings)

    with task_context():
        tags = inspect_image(
            client,
            args.image,
            args.tags.split(",") if args.tags else None,
            threads=settings.request_threads,
        )
        output = [dict(tag=tag.name, **manifest_to_dict(tag.manifest)) for tag in tags]
        print(json.dumps(output, indent=2))

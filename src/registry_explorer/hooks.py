import sys
from typing import List

from pubtools.pluggy import pm, hookspec

# Define hooks here for any events which may be of interest for other projects,
# e.g. audit logging of deletions.


@hookspec
def registry_manifest_deleted(image: str, digest: str) -> None:
    """Invoked after a manifest, and so all tags referencing it, has been deleted.

    :param image: Repository the manifest was deleted from.
    :type image: str
    :param digest: Digest of the deleted manifest.
    :type digest: str
    """


@hookspec
def registry_image_tags_deleted(image: str, digests: List[str]) -> None:
    """Invoked after all tags of an image have been deleted.

    :param image: Repository whose tags were deleted.
    :type image: str
    :param digests: Digest of each deleted manifest.
    :type digests: list[str]
    """


pm.add_hookspecs(sys.modules[__name__])

import logging
import re
import threading
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union, cast

import requests

from .exceptions import RequestError
from .models import ExplorerSettings
from .registry_session import RegistrySession
from .types import CatalogResponse, ImageConfig, TagsResponse

LOG = logging.getLogger("registry_explorer")


class RegistryClient:
    """Class for performing Docker HTTP API operations with a container registry."""

    MANIFEST_LIST_TYPE = "application/vnd.docker.distribution.manifest.list.v2+json"
    MANIFEST_V2S2_TYPE = "application/vnd.docker.distribution.manifest.v2+json"
    MANIFEST_OCI_LIST_TYPE = "application/vnd.oci.image.index.v1+json"
    MANIFEST_OCI_V2S2_TYPE = "application/vnd.oci.image.manifest.v1+json"

    MANIFEST_ACCEPT = ", ".join(
        [MANIFEST_V2S2_TYPE, MANIFEST_OCI_V2S2_TYPE, MANIFEST_OCI_LIST_TYPE, MANIFEST_LIST_TYPE]
    )
    SINGLE_MANIFEST_ACCEPT = ", ".join([MANIFEST_V2S2_TYPE, MANIFEST_OCI_V2S2_TYPE])

    def __init__(
        self,
        username: Optional[str],
        password: Optional[str],
        host: str,
        timeout: int = 10,
        retries: int = 0,
        verify: bool = True,
    ) -> None:
        """
        Initialize.

        Args:
            username (str):
                Registry username.
            password (str):
                Registry password.
            host (str):
                Registry URL.
            timeout (int):
                Timeout of a single request in seconds.
            retries (int):
                Retries of failed GET requests.
            verify (bool):
                Whether to verify the registry's TLS certificate.
        """
        self.username = username
        self.password = password
        self.host = host
        self.timeout = timeout
        self.retries = retries
        self.verify = verify
        self.thread_local = threading.local()

    @classmethod
    def from_settings(cls, settings: ExplorerSettings) -> "RegistryClient":
        """Create a client for the registry configured in settings."""
        return cls(
            settings.registry_username,
            settings.registry_password,
            settings.registry_host,
            timeout=settings.request_timeout,
            retries=settings.registry_retries,
            verify=settings.registry_verify,
        )

    @property
    def session(self) -> RegistrySession:
        """Create RegistrySession object per thread."""
        if not hasattr(self.thread_local, "session"):
            self.thread_local.session = RegistrySession(
                hostname=self.host,
                username=self.username,
                password=self.password,
                timeout=self.timeout,
                retries=self.retries,
                verify=self.verify,
            )
        return self.thread_local.session

    def catalog(self) -> List[str]:
        """
        Get names of all repositories in the registry.

        Returns (list):
            Repository names.
        """
        pages = self._get_all_pages("_catalog", "repositories")
        return [
            repo for page in pages for repo in (cast(CatalogResponse, page)["repositories"] or [])
        ]

    def tags(self, image: str) -> List[str]:
        """
        Get tags of a repository.

        Registries omit the tags field (or set it to null) for a repository without tags and some
        of them answer 404 once the last tag was deleted. Both are reported as no tags.

        Args:
            image (str):
                Repository whose tags should be gathered.
        Returns (list):
            Tags which the repository contains.
        """
        try:
            pages = self._get_all_pages("{0}/tags/list".format(image), "tags")
        except RequestError as exc:
            response = getattr(exc.__cause__, "response", None)
            if response is not None and response.status_code == 404:
                LOG.warning("Repository '{0}' doesn't exist, it has no tags".format(image))
                return []
            raise
        return [tag for page in pages for tag in (cast(TagsResponse, page)["tags"] or [])]

    def count_tags(self, image: str) -> int:
        """Get the number of tags in a repository."""
        return len(self.tags(image))

    def get_manifest(
        self,
        image: str,
        reference: str,
        accept: str = MANIFEST_ACCEPT,
        return_headers: bool = False,
    ) -> Union[Any, Tuple[Any, Mapping[str, str]]]:
        """
        Get manifest of an image.

        The response status is not checked. Registries return an error payload instead of the
        manifest in some cases and callers tell the two apart by the response headers.

        Args:
            image (str):
                Repository of the manifest.
            reference (str):
                Tag or digest of the manifest.
            accept (str):
                Value of the Accept header, i.e. accepted manifest media types.
            return_headers (bool):
                Whether to also return the response headers.
        Returns (dict|(dict, dict)):
            Decoded response body, optionally with the response headers.
        """
        endpoint = "{0}/manifests/{1}".format(image, reference)
        kwargs = {"headers": {"Accept": accept}}
        response = self._request("GET", endpoint, kwargs, check_status=False)
        body = self._decode(response, endpoint)

        if return_headers:
            return (body, response.headers)
        return body

    def get_blob(self, image: str, digest: str) -> ImageConfig:
        """
        Get a JSON blob, i.e. an image config, of an image.

        Args:
            image (str):
                Repository of the blob.
            digest (str):
                Digest of the blob.
        Returns (dict):
            Decoded blob.
        """
        endpoint = "{0}/blobs/{1}".format(image, digest)
        response = self._request("GET", endpoint)
        return cast(ImageConfig, self._decode(response, endpoint))

    def delete_manifest(self, image: str, digest: str) -> None:
        """
        Delete a manifest, and so every tag referencing it, from a repository.

        Args:
            image (str):
                Repository of the manifest.
            digest (str):
                Digest of the manifest.
        Raises:
            RequestError:
                When the registry didn't confirm the deletion with a 2xx status.
        """
        endpoint = "{0}/manifests/{1}".format(image, digest)
        self._request("DELETE", endpoint)

    def _get_all_pages(self, endpoint: str, key: str) -> List[Dict[str, Any]]:
        """
        Get all pages of a paginated listing endpoint.

        Args:
            endpoint (str):
                Endpoint of the first page.
            key (str):
                Field which holds the listed values. Missing field is treated as empty page.
        Returns (list):
            Decoded pages.
        """
        response = self._request("GET", endpoint)
        pages = [self._decode(response, endpoint)]

        while "Link" in response.headers:
            # next page response has format '</v2/....>; rel="next"'
            matches = re.findall('</v2/(.+?)>; rel="next"', response.headers["Link"])
            if len(matches) != 1:
                raise RequestError(
                    "Could not extract next page URL from response '{0}'".format(
                        response.headers["Link"]
                    )
                )
            endpoint = matches[0]
            response = self._request("GET", endpoint)
            pages.append(self._decode(response, endpoint))

        for page in pages:
            if not isinstance(page, dict):
                raise RequestError("Unexpected response of '{0}': {1}".format(endpoint, page))
            page.setdefault(key, [])
        return pages

    def _request(
        self,
        method: str,
        endpoint: str,
        kwargs: Dict[Any, Any] = {},
        check_status: bool = True,
    ) -> requests.Response:
        """
        Perform a Docker HTTP API request on the registry.

        Args:
            method (str):
                REST API method of the request (GET, DELETE).
            endpoint (str):
                Endpoint of the request.
            kwargs (dict):
                Optional arguments to add to the Request object.
            check_status (bool):
                Whether a non-2xx status is a failure.
        Returns (Response):
            Request library's Response object.
        Raises:
            RequestError: When the request failed or returned an error status.
        """
        try:
            r = self.session.request(method, endpoint, **kwargs)
            if check_status:
                r.raise_for_status()
        except requests.RequestException as exc:
            LOG.error("{0} request to '{1}' failed: {2}".format(method, endpoint, exc))
            raise RequestError("{0} {1} failed: {2}".format(method, endpoint, exc)) from exc
        return r

    def _decode(self, response: requests.Response, endpoint: str) -> Any:
        """Decode JSON body of a response."""
        try:
            return response.json()
        except ValueError as exc:
            LOG.error("Response of '{0}' is not valid JSON: {1}".format(endpoint, exc))
            raise RequestError(
                "Response of '{0}' is not valid JSON: {1}".format(endpoint, exc)
            ) from exc

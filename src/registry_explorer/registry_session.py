from typing import Any, Optional

import requests
from urllib3.util.retry import Retry

from . import __version__

USER_AGENT = "Docker Registry Explorer v{0}".format(__version__)


class RegistrySession(object):
    """Helper session class which wraps requests.Session for the registry's Docker HTTP API."""

    def __init__(
        self,
        hostname: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: int = 10,
        retries: int = 0,
        verify: bool = True,
    ) -> None:
        """
        Initialize.

        Args:
            hostname (str):
                Registry URL or host name. HTTPS is assumed when no scheme is given.
            username (str):
                Username for HTTP Basic authentication.
            password (str):
                Password for HTTP Basic authentication.
            timeout (int):
                Timeout of a single request in seconds.
            retries (int):
                How many times GET and HEAD requests are retried on connection errors
                and 5xx statuses. Other methods are never retried.
            verify (bool):
                Whether to verify the registry's TLS certificate.
        """
        self.hostname = hostname.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.verify = verify
        self.session.headers["User-Agent"] = USER_AGENT
        if username is not None:
            self.session.auth = (username, password or "")

        retry = Retry(
            total=retries,
            read=retries,
            connect=retries,
            backoff_factor=2,
            status_forcelist=set(range(500, 512)),
            allowed_methods=frozenset(["GET", "HEAD"]),
            raise_on_status=False,
        )
        adapter = requests.adapters.HTTPAdapter(max_retries=retry)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def get(self, endpoint: str, **kwargs: Any) -> requests.Response:
        """
        HTTP GET request against the registry's Docker HTTP API.

        Args:
            endpoint (str):
                Endpoint of the request, relative to /v2/.
        Returns (Response):
            Request library's Response object.
        """
        kwargs.setdefault("timeout", self.timeout)
        return self.session.get(self._api_url(endpoint), **kwargs)

    def delete(self, endpoint: str, **kwargs: Any) -> requests.Response:
        """HTTP DELETE request against the registry's Docker HTTP API."""
        kwargs.setdefault("timeout", self.timeout)
        return self.session.delete(self._api_url(endpoint), **kwargs)

    def request(self, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        """
        Perform a request of the given method.

        Args:
            method (str):
                REST API method of the request (GET, HEAD, DELETE).
            endpoint (str):
                Endpoint of the request, relative to /v2/.
        Returns (Response):
            Request library's Response object.
        """
        kwargs.setdefault("timeout", self.timeout)
        return self.session.request(method, self._api_url(endpoint), **kwargs)

    def _api_url(self, endpoint: str) -> str:
        """
        Generate full URL out of an endpoint.

        Args:
            endpoint (str):
                Endpoint of the request, relative to /v2/.
        Returns (str):
            Full URL of the endpoint.
        """
        if "://" in self.hostname:
            base = self.hostname
        else:
            base = "https://{0}".format(self.hostname)
        return "{0}/v2/{1}".format(base, endpoint.lstrip("/"))

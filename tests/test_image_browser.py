from datetime import datetime, timezone
import threading
import time

import mock
import pytest
import requests_mock

from registry_explorer import image_browser
from registry_explorer.exceptions import MalformedManifest, PaginationError, RequestError
from registry_explorer.manifest_resolver import ManifestResolver
from registry_explorer.models import (
    ErrorManifest,
    Image,
    MultiArchManifest,
    NominalManifest,
)
from registry_explorer.registry_client import RegistryClient

from .utils.misc import REGISTRY_URL, register_single


def nominal(digest, day):
    return NominalManifest(
        digest=digest, created=datetime(2024, 1, day, tzinfo=timezone.utc), architecture="amd64"
    )


def fake_resolver(manifests):
    resolver = mock.MagicMock()
    resolver.resolve.side_effect = lambda image, tag: manifests[tag]
    return resolver


def test_get_images():
    client = mock.MagicMock()
    client.catalog.return_value = ["foo", "bar", "empty"]
    client.count_tags.side_effect = lambda name: {"foo": 3, "bar": 1, "empty": 0}[name]

    images = image_browser.get_images(client, threads=2)

    assert images == [Image("foo", 3), Image("bar", 1), Image("empty", 0)]


def test_get_images_failure():
    client = mock.MagicMock()
    client.catalog.return_value = ["foo"]
    client.count_tags.side_effect = RequestError("GET foo/tags/list failed")

    with pytest.raises(RequestError):
        image_browser.get_images(client)


def test_get_image_page_sorted_newest_first():
    client = mock.MagicMock()
    client.tags.return_value = ["old", "broken", "new", "multi"]
    resolver = fake_resolver(
        {
            "old": nominal("sha256:old", 1),
            "broken": ErrorManifest(digest="sha256:rev"),
            "new": nominal("sha256:new", 20),
            "multi": MultiArchManifest(digest="sha256:multi", architectures=("linux/amd64",)),
        }
    )

    page = image_browser.get_image_page(client, resolver, "foo", size=10)

    assert [tag.name for tag in page.data[:2]] == ["new", "old"]
    assert {tag.name for tag in page.data[2:]} == {"broken", "multi"}
    assert page.total_element_count == 4
    assert resolver.resolve.call_count == 4


def test_get_image_page_paginates_raw_tag_list():
    client = mock.MagicMock()
    client.tags.return_value = ["v1", "v2"]
    resolver = fake_resolver({"v1": nominal("sha256:1", 1), "v2": nominal("sha256:2", 2)})

    page = image_browser.get_image_page(client, resolver, "foo", page=0, size=1)

    assert [tag.name for tag in page] == ["v1"]
    assert page.need_pagination
    resolver.resolve.assert_called_once_with("foo", "v1")


def test_get_image_page_default_size():
    client = mock.MagicMock()
    client.tags.return_value = ["v{0}".format(n) for n in range(10)]
    resolver = fake_resolver({"v{0}".format(n): nominal("sha256:d", 1) for n in range(10)})

    page = image_browser.get_image_page(client, resolver, "foo", default_size=4)

    assert page.size == 4
    assert len(page.data) == 4


def test_get_image_page_empty():
    client = mock.MagicMock()
    client.tags.return_value = []
    resolver = mock.MagicMock()

    page = image_browser.get_image_page(client, resolver, "foo")

    assert page.is_empty
    resolver.resolve.assert_not_called()


def test_get_image_page_resolution_failure_aborts_page():
    client = mock.MagicMock()
    client.tags.return_value = ["good", "bad"]
    resolver = mock.MagicMock()

    def resolve(image, tag):
        if tag == "bad":
            raise MalformedManifest("Manifest doesn't contain a 'config' object")
        return nominal("sha256:1", 1)

    resolver.resolve.side_effect = resolve

    with pytest.raises(MalformedManifest):
        image_browser.get_image_page(client, resolver, "foo")


def test_get_image_page_out_of_range():
    client = mock.MagicMock()
    client.tags.return_value = ["v1"]

    with pytest.raises(PaginationError):
        image_browser.get_image_page(client, mock.MagicMock(), "foo", page=3)


def test_get_image_page_end_to_end():
    client = RegistryClient("user", "pass", REGISTRY_URL)
    resolver = ManifestResolver(client)

    with requests_mock.Mocker() as m:
        m.get(REGISTRY_URL + "/v2/foo/tags/list", json={"name": "foo", "tags": ["v1", "v2"]})
        register_single(m, "foo", "v1", "sha256:d1", "2024-01-01T00:00:00Z", config="sha256:cfg1")
        register_single(m, "foo", "v2", "sha256:d2", "2024-06-01T00:00:00Z", config="sha256:cfg2")

        page = image_browser.get_image_page(client, resolver, "foo", page=0, size=1)

    assert [tag.name for tag in page] == ["v1"]
    assert page.data[0].manifest.digest == "sha256:d1"


def test_delete_tag(hookspy):
    client = mock.MagicMock()

    image_browser.delete_tag(client, "foo", "sha256:deadbeef")

    client.delete_manifest.assert_called_once_with("foo", "sha256:deadbeef")
    assert hookspy == [
        ("registry_manifest_deleted", {"image": "foo", "digest": "sha256:deadbeef"}),
    ]


def test_delete_tag_failure(hookspy):
    client = mock.MagicMock()
    client.delete_manifest.side_effect = RequestError("DELETE failed")

    with pytest.raises(RequestError):
        image_browser.delete_tag(client, "foo", "sha256:deadbeef")
    assert hookspy == []


def test_delete_tag_request():
    client = RegistryClient("user", "pass", REGISTRY_URL)

    with requests_mock.Mocker() as m:
        m.delete(REGISTRY_URL + "/v2/foo/manifests/sha256:deadbeef", status_code=404)

        with pytest.raises(RequestError):
            image_browser.delete_tag(client, "foo", "sha256:deadbeef")

        assert m.request_history[0].method == "DELETE"
        assert m.request_history[0].path == "/v2/foo/manifests/sha256:deadbeef"


def test_delete_all_image_tags(hookspy):
    client = mock.MagicMock()
    client.tags.return_value = ["latest", "1.0", "0.9", "gone"]
    resolver = fake_resolver(
        {
            "latest": nominal("sha256:one", 2),
            "1.0": nominal("sha256:one", 2),
            "0.9": MultiArchManifest(digest="sha256:two", architectures=("linux/amd64",)),
            "gone": ErrorManifest(digest="sha256:revision"),
        }
    )

    digests = image_browser.delete_all_image_tags(client, resolver, "foo")

    assert digests == ["sha256:one", "sha256:two"]
    assert client.delete_manifest.call_args_list == [
        mock.call("foo", "sha256:one"),
        mock.call("foo", "sha256:two"),
    ]
    assert hookspy == [
        (
            "registry_image_tags_deleted",
            {"image": "foo", "digests": ["sha256:one", "sha256:two"]},
        ),
    ]


def test_delete_all_image_tags_stops_on_failure(hookspy):
    client = mock.MagicMock()
    client.tags.return_value = ["a", "b"]
    client.delete_manifest.side_effect = RequestError("DELETE failed")
    resolver = fake_resolver({"a": nominal("sha256:a", 1), "b": nominal("sha256:b", 1)})

    with pytest.raises(RequestError):
        image_browser.delete_all_image_tags(client, resolver, "foo")

    client.delete_manifest.assert_called_once_with("foo", "sha256:a")
    assert hookspy == []


def test_delete_all_image_tags_bounded_resolution(hookspy):
    client = mock.MagicMock()
    client.tags.return_value = ["v{0}".format(n) for n in range(60)]
    lock = threading.Lock()
    active = []
    peak = []

    def resolve(image, tag):
        with lock:
            active.append(tag)
            peak.append(len(active))
        time.sleep(0.01)
        with lock:
            active.remove(tag)
        return nominal("sha256:{0}".format(tag), 1)

    resolver = mock.MagicMock()
    resolver.resolve.side_effect = resolve

    digests = image_browser.delete_all_image_tags(client, resolver, "foo", threads=5)

    assert len(digests) == 60
    assert resolver.resolve.call_count == 60
    assert max(peak) <= 5


def test_resolve_tags_worker_count():
    resolver = fake_resolver({"a": nominal("sha256:a", 1), "b": nominal("sha256:b", 2)})

    with mock.patch(
        "registry_explorer.image_browser.run_in_parallel", wraps=image_browser.run_in_parallel
    ) as parallel:
        image_browser.resolve_tags(resolver, "foo", ["a", "b"])
        image_browser.resolve_tags(resolver, "foo", ["a", "b"], threads=1)

    assert [c[1]["threads"] for c in parallel.call_args_list] == [2, 1]

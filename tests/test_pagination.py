import pytest

from registry_explorer.exceptions import PaginationError
from registry_explorer.pagination import paginate


def test_paginate_first_page():
    page = paginate(list(range(40)))

    assert page.page == 0
    assert page.size == 15
    assert page.data == list(range(15))
    assert page.total_element_count == 40
    assert page.total_pages == 3
    assert page.previous == 0
    assert page.next == 1
    assert page.need_pagination


def test_paginate_last_page():
    page = paginate(list(range(40)), page=2, size=15)

    assert page.data == list(range(30, 40))
    assert page.previous == 1
    assert page.next == 2


def test_paginate_single_page():
    page = paginate(["v1", "v2"], default_size=10)

    assert page.data == ["v1", "v2"]
    assert page.total_pages == 1
    assert not page.need_pagination
    assert page.next == 0


def test_paginate_raw_order():
    page = paginate(["v1", "v2"], page=0, size=1)

    assert page.data == ["v1"]
    assert page.total_pages == 2


def test_paginate_empty():
    page = paginate([])

    assert page.is_empty
    assert page.total_pages == 0
    assert not page.need_pagination
    assert list(page) == []


@pytest.mark.parametrize(
    "page,size,match",
    [
        (0, 0, "Page size must be positive"),
        (0, -5, "Page size must be positive"),
        (-1, 10, "Page must not be negative"),
        (1, 10, "out of range"),
        (4, 1, "out of range"),
    ],
)
def test_paginate_invalid(page, size, match):
    with pytest.raises(PaginationError, match=match):
        paginate(["a", "b", "c"], page=page, size=size)


def test_paginate_empty_past_first_page():
    with pytest.raises(PaginationError):
        paginate([], page=1)


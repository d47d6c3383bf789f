import dataclasses
import math
from typing import Generic, Iterator, List, Optional, Sequence, TypeVar

from .exceptions import PaginationError

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 15


@dataclasses.dataclass(frozen=True)
class Paginated(Generic[T]):
    """One page of a list.

    Args:
        page (int): Index of the page, starting at 0.
        size (int): Maximum number of elements on a page.
        total_element_count (int): Number of elements on all pages.
        data (list): Elements of this page only.
    """

    page: int
    size: int
    total_element_count: int
    data: List[T]

    @property
    def previous(self) -> int:
        return max(self.page - 1, 0)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_element_count / self.size)

    @property
    def next(self) -> int:
        if self.page + 1 < self.total_pages:
            return self.page + 1
        return self.page

    @property
    def need_pagination(self) -> bool:
        return self.total_pages > 1

    @property
    def is_empty(self) -> bool:
        return not self.data

    def __iter__(self) -> Iterator[T]:
        return iter(self.data)


def paginate(
    data: Sequence[T],
    page: Optional[int] = None,
    size: Optional[int] = None,
    default_size: int = DEFAULT_PAGE_SIZE,
) -> Paginated[T]:
    """
    Cut a page out of an in-memory list.

    Args:
        data (list):
            Whole list.
        page (int):
            Requested page, 0 when not given.
        size (int):
            Requested page size, default_size when not given.
        default_size (int):
            Page size used when none was requested.
    Returns (Paginated):
        Requested page. Empty list gives an empty first page.
    Raises:
        PaginationError:
            If size isn't positive, page is negative or the page is past the end of the list.
    """
    size = default_size if size is None else size
    page = 0 if page is None else page
    if size <= 0:
        raise PaginationError("Page size must be positive, got {0}".format(size))
    if page < 0:
        raise PaginationError("Page must not be negative, got {0}".format(page))

    start = page * size
    end = min(start + size, len(data))
    if start >= len(data) and not (page == 0 and not data):
        raise PaginationError(
            "Page {0} of size {1} is out of range for {2} elements".format(page, size, len(data))
        )

    return Paginated(
        page=page, size=size, total_element_count=len(data), data=list(data[start:end])
    )

"""Edge points and the per-image collection that indexes them."""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

MAX_POINTS = 1 << 24
MAX_RESOLUTION = 6144
MAX_VOTERLIST_SIZE = 16 * MAX_POINTS


@dataclass(eq=False)
class EdgePoint:
    """An edge pixel with its image gradient.

    Points compare and hash by identity, as each one is a distinct entry of a
    collection.
    """

    x: float
    y: float
    dx: float
    dy: float

    @property
    def gradient(self) -> tuple[float, float]:
        """The gradient vector ``(dx, dy)``."""
        return (self.dx, self.dy)

    @property
    def gradient_norm(self) -> float:
        """Euclidean norm of the gradient."""
        return math.hypot(self.dx, self.dy)


class EdgePointCollection:
    """All edge points of one image, addressable by pixel and by index.

    Each point carries links to the points before and after it on a chain,
    the list of points that voted for it, and two processed flags.
    """

    def __init__(self, width: int, height: int) -> None:
        if width * height > MAX_RESOLUTION * MAX_RESOLUTION:
            raise ValueError("image resolution is too large")
        self._width = width
        self._height = height
        self._edge_map: dict[tuple[int, int], int] = {}
        self._points: list[EdgePoint] = []
        self._indices: dict[EdgePoint, int] = {}
        self._links: list[list[int]] = []
        self._voters: list[tuple[int, ...]] = []
        self._processed_in: set[int] = set()
        self._processed_aux: set[int] = set()

    @property
    def shape(self) -> tuple[int, int]:
        """Image size as ``(width, height)``."""
        return (self._width, self._height)

    @property
    def point_count(self) -> int:
        """Number of points added so far."""
        return len(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[EdgePoint]:
        return iter(self._points)

    def add_point(self, x: int, y: int, dx: float, dy: float) -> EdgePoint:
        """Add the edge point at pixel ``(x, y)`` with gradient ``(dx, dy)``."""
        if not (0 <= x < self._width and 0 <= y < self._height):
            raise IndexError("coordinate out of range")
        if (x, y) in self._edge_map:
            raise ValueError("point already exists")
        if len(self._points) >= MAX_POINTS:
            raise ValueError(
                f"too many edge points (nb points: {len(self._points)}, max: {MAX_POINTS})"
            )
        index = len(self._points)
        point = EdgePoint(x, y, dx, dy)
        self._edge_map[(x, y)] = index
        self._points.append(point)
        self._indices[point] = index
        self._links.append([-1, -1])
        self._voters.append(())
        return point

    def point_at(self, x: int, y: int) -> EdgePoint | None:
        """Return the point at pixel ``(x, y)``, or None when there is none."""
        index = self._edge_map.get((int(x), int(y)))
        return None if index is None else self._points[index]

    def point(self, index: int) -> EdgePoint | None:
        """Return the point of *index*; a negative index means no point."""
        if index < 0:
            return None
        return self._points[index]

    def index(self, point: EdgePoint | None) -> int:
        """Return the index of *point*, or -1 for None."""
        if point is None:
            return -1
        try:
            return self._indices[point]
        except KeyError:
            raise ValueError("point does not belong to this collection") from None

    def _require_index(self, point: EdgePoint) -> int:
        if point is None:
            raise ValueError("a point is required")
        return self.index(point)

    def _link_index(self, link: int | EdgePoint | None) -> int:
        if link is None or isinstance(link, EdgePoint):
            return self.index(link)
        link = int(link)
        if not -1 <= link < len(self._points):
            raise IndexError(f"link {link} out of range")
        return link

    def create_voter_lists(self, voter_lists: Sequence[Iterable[int]]) -> None:
        """Set, for every point in index order, the indices of its voters."""
        if len(voter_lists) != len(self._points):
            raise ValueError("inconsistent sizes")
        lists = [tuple(int(v) for v in voters) for voters in voter_lists]
        if sum(len(voters) for voters in lists) > MAX_VOTERLIST_SIZE:
            raise ValueError("too many voters")
        self._voters = lists

    def voters(self, point: EdgePoint) -> tuple[int, ...]:
        """Indices of the points that voted for *point*."""
        return self._voters[self._require_index(point)]

    def voters_size(self, point: EdgePoint) -> int:
        """Number of points that voted for *point*."""
        return len(self.voters(point))

    def before(self, point: EdgePoint) -> EdgePoint | None:
        """The point linked before *point*, if any."""
        return self.point(self._links[self._require_index(point)][0])

    def set_before(self, point: EdgePoint, link: int | EdgePoint | None) -> None:
        """Link *point* to the point before it, given by index or point."""
        self._links[self._require_index(point)][0] = self._link_index(link)

    def after(self, point: EdgePoint) -> EdgePoint | None:
        """The point linked after *point*, if any."""
        return self.point(self._links[self._require_index(point)][1])

    def set_after(self, point: EdgePoint, link: int | EdgePoint | None) -> None:
        """Link *point* to the point after it, given by index or point."""
        self._links[self._require_index(point)][1] = self._link_index(link)

    @staticmethod
    def _set_flag(flags: set[int], index: int, flag: bool) -> None:
        if flag:
            flags.add(index)
        else:
            flags.discard(index)

    def set_processed_in(self, point: EdgePoint, flag: bool) -> None:
        """Set or clear the inner processed flag of *point*."""
        self._set_flag(self._processed_in, self._require_index(point), flag)

    def test_processed_in(self, point: EdgePoint) -> bool:
        """Whether the inner processed flag of *point* is set."""
        return self._require_index(point) in self._processed_in

    def set_processed_aux(self, point: EdgePoint, flag: bool) -> None:
        """Set or clear the auxiliary processed flag of *point*."""
        self._set_flag(self._processed_aux, self._require_index(point), flag)

    def test_processed_aux(self, point: EdgePoint) -> bool:
        """Whether the auxiliary processed flag of *point* is set."""
        return self._require_index(point) in self._processed_aux
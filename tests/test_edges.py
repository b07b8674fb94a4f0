import pytest

from ringmarker.edges import MAX_RESOLUTION, EdgePoint, EdgePointCollection


@pytest.fixture
def collection():
    coll = EdgePointCollection(20, 10)
    coll.add_point(1, 2, 3.0, 4.0)
    coll.add_point(5, 6, -1.0, 0.5)
    coll.add_point(7, 8, 0.0, 2.0)
    return coll


def test_add_point_is_found_by_pixel(collection):
    point = collection.point_at(5, 6)
    assert (point.x, point.y, point.dx, point.dy) == (5, 6, -1.0, 0.5)
    assert point.gradient == (-1.0, 0.5)


def test_empty_pixel_has_no_point(collection):
    assert collection.point_at(0, 0) is None


def test_shape_and_count(collection):
    assert collection.shape == (20, 10)
    assert len(collection) == 3
    assert collection.point_count == 3


def test_duplicate_point_rejected(collection):
    with pytest.raises(ValueError):
        collection.add_point(1, 2, 0.0, 0.0)


@pytest.mark.parametrize("x, y", [(-1, 0), (20, 0), (0, 10), (0, -1)])
def test_out_of_range_point_rejected(x, y):
    coll = EdgePointCollection(20, 10)
    with pytest.raises(IndexError):
        coll.add_point(x, y, 1.0, 1.0)


def test_resolution_too_large():
    with pytest.raises(ValueError):
        EdgePointCollection(MAX_RESOLUTION + 1, MAX_RESOLUTION)


def test_index_round_trip(collection):
    for point in collection:
        assert collection.point(collection.index(point)) is point


def test_none_and_negative_index(collection):
    assert collection.index(None) == -1
    assert collection.point(-1) is None


def test_foreign_point_rejected(collection):
    with pytest.raises(ValueError):
        collection.index(EdgePoint(1, 2, 3.0, 4.0))


def test_voter_lists(collection):
    collection.create_voter_lists([[1, 2], [], [0]])
    p0 = collection.point(0)
    p1 = collection.point(1)
    p2 = collection.point(2)
    assert collection.voters(p0) == (1, 2)
    assert collection.voters(p1) == ()
    assert collection.voters(p2) == (0,)
    assert collection.voters_size(p0) == 2


def test_voter_lists_size_mismatch(collection):
    with pytest.raises(ValueError):
        collection.create_voter_lists([[1], [2]])


def test_links_default_and_set(collection):
    p0, p1, p2 = list(collection)
    assert collection.before(p1) is None
    assert collection.after(p1) is None
    collection.set_before(p1, 0)
    collection.set_after(p1, p2)
    assert collection.before(p1) is p0
    assert collection.after(p1) is p2
    collection.set_after(p1, -1)
    assert collection.after(p1) is None


def test_link_out_of_range(collection):
    with pytest.raises(IndexError):
        collection.set_before(collection.point(0), 3)


def test_processed_flags(collection):
    p0, p1, _ = list(collection)
    assert collection.test_processed_in(p0) is False
    collection.set_processed_in(p0, True)
    assert collection.test_processed_in(p0) is True
    assert collection.test_processed_aux(p0) is False
    assert collection.test_processed_in(p1) is False
    collection.set_processed_aux(p1, True)
    assert collection.test_processed_aux(p1) is True
    collection.set_processed_in(p0, False)
    assert collection.test_processed_in(p0) is False
import pytest

from gazetrace.core.dataset import Dataset, Point3
from gazetrace.core.errors import MissingColumnError
from gazetrace.core.spatial_filter import BoundingBox, CullConfig, cull, cull_by_box, cull_by_range

COLS = ("EtPositionX", "EtPositionY", "EtPositionZ")


@pytest.fixture
def five_rows() -> Dataset:
    return Dataset(COLS, [(float(i), 0.0, 0.0) for i in range(5)])


def test_range_cull_inclusive(five_rows):
    out = cull_by_range(five_rows, 1, 3)
    assert [r["EtPositionX"] for r in out] == [1.0, 2.0, 3.0]


def test_range_cull_does_not_mutate_input(five_rows):
    cull_by_range(five_rows, 1, 3)
    assert len(five_rows) == 5


@pytest.mark.parametrize("bounds", [(3, 1), (2, 2), (-1, 3), (0, 6)])
def test_invalid_range_is_a_noop(five_rows, bounds, caplog):
    out = cull_by_range(five_rows, *bounds)
    assert out is five_rows
    assert "invalid" in caplog.text


def test_range_to_length_keeps_tail(five_rows):
    out = cull_by_range(five_rows, 2, 5)
    assert [r["EtPositionX"] for r in out] == [2.0, 3.0, 4.0]


def test_box_boundary_point_is_kept():
    box = BoundingBox((0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
    ds = Dataset(COLS, [(1.0, 1.0, 1.0), (0.0, 0.5, 0.0), (1.0000001, 0.5, 0.5)])
    out = cull_by_box(ds, box)
    assert [r.values_tuple for r in out] == [(1.0, 1.0, 1.0), (0.0, 0.5, 0.0)]


def test_box_axes_are_independent():
    # inside on x and z, outside on y only
    box = BoundingBox((-1.0, 0.0, -1.0), (1.0, 0.5, 1.0))
    ds = Dataset(COLS, [(0.0, 0.8, 0.0)])
    assert len(cull_by_box(ds, box)) == 0


def test_box_contains_and_from_center_size():
    box = BoundingBox.from_center_size((0.0, 1.0, 0.0), (2.0, 2.0, 4.0))
    assert box.min == (-1.0, 0.0, -2.0)
    assert box.max == (1.0, 2.0, 2.0)
    assert box.contains(Point3(1.0, 2.0, -2.0))
    assert not box.contains(Point3(0.0, 2.5, 0.0))


def test_box_missing_column():
    ds = Dataset(("x", "y", "z"), [(0, 0, 0)])
    with pytest.raises(MissingColumnError):
        cull_by_box(ds, BoundingBox())


def test_combined_cull_applies_range_first(five_rows):
    config = CullConfig(
        by_range=True, cull_from=0, cull_to=3,
        by_box=True, box=BoundingBox((2.0, -1.0, -1.0), (10.0, 1.0, 1.0)),
    )
    out = cull(five_rows, config)
    # range keeps x in 0..3, box then keeps x >= 2
    assert [r["EtPositionX"] for r in out] == [2.0, 3.0]


def test_cull_disabled_returns_input(five_rows):
    assert cull(five_rows, CullConfig()) is five_rows

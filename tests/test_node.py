import numpy as np
import pytest

from somlib import Coordinate, Grid, InvalidStateError, ManhattanDistance


def test_grid_init_range_and_shape():
    grid = Grid(5, 4, 3, rng=np.random.default_rng(0))

    assert grid.weights.shape == (5, 4, 3)
    assert np.all(grid.weights >= 0.0) and np.all(grid.weights < 1.0)
    assert len(grid) == 20


def test_grid_rejects_bad_size():
    with pytest.raises(ValueError):
        Grid(0, 3, 2)


def test_row_major_iteration():
    grid = Grid(2, 3, 1)
    coords = [node.coordinate.as_tuple() for node in grid]
    assert coords == [(0, 0), (0, 1), (0, 2), (1, 0), (1, 1), (1, 2)]
    assert grid.node_at_flat(4).coordinate == Coordinate(1, 1)


def test_node_is_a_view():
    grid = Grid(2, 2, 2, weights=np.zeros((2, 2, 2)))
    node = grid[1, 0]

    node.weights += 0.5
    node.label = "cat"
    node.cluster_group = 3
    node.increment_count()
    node.increment_count()

    np.testing.assert_array_equal(grid.weights[1, 0], [0.5, 0.5])
    np.testing.assert_array_equal(grid.weights[0, 0], [0.0, 0.0])
    assert grid.labels[1, 0] == "cat"
    assert grid[1, 0].cluster_group == 3
    assert grid[1, 0].count == 2


def test_node_weights_setter_checks_length():
    grid = Grid(2, 2, 3)
    with pytest.raises(InvalidStateError):
        grid[0, 0].weights = [1.0, 2.0]


def test_get_distance_default_euclidean():
    weights = np.zeros((1, 1, 2))
    grid = Grid(1, 1, 2, weights=weights)
    assert grid[0, 0].get_distance(np.array([3.0, 4.0])) == pytest.approx(5.0)


def test_get_distance_uses_grid_measure():
    grid = Grid(1, 1, 2, distance_measure=ManhattanDistance(), weights=np.zeros((1, 1, 2)))
    assert grid[0, 0].get_distance([3.0, 4.0]) == pytest.approx(7.0)


def test_get_distance_length_mismatch():
    grid = Grid(1, 1, 2)
    with pytest.raises(InvalidStateError):
        grid[0, 0].get_distance([1.0, 2.0, 3.0])


def test_grid_distance():
    grid = Grid(5, 5, 1)
    assert grid[0, 0].get_grid_distance(grid[3, 4]) == pytest.approx(5.0)
    assert grid[2, 2].get_grid_distance(grid[2, 2]) == 0.0


def test_grid_distances_from_matches_node_distance():
    grid = Grid(4, 3, 1)
    center = grid[1, 2]
    distances = grid.grid_distances_from(center)
    for node in grid:
        x, y = node.coordinate.as_tuple()
        assert distances[x, y] == pytest.approx(center.get_grid_distance(node))


def test_node_equality_and_dict():
    grid = Grid(2, 2, 2, weights=np.full((2, 2, 2), 0.25))
    assert grid[0, 1] == grid[0, 1]
    assert grid[0, 1] != grid[1, 0]

    data = grid[0, 1].to_dict()
    assert data["coordinate"] == {"x": 0, "y": 1}
    assert data["weights"] == [0.25, 0.25]
    assert data["label"] is None
    assert data["count"] == 0


def test_index_out_of_grid():
    grid = Grid(2, 2, 1)
    with pytest.raises(IndexError):
        grid[2, 0]

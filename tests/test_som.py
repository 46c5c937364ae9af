import json

import numpy as np
import pytest

from somlib import (
    ArrayReader,
    ConfigurationError,
    ConstantDecay,
    Dataset,
    DistanceMeasure,
    EuclideanDistance,
    Feature,
    Instance,
    InvalidStateError,
    ManhattanDistance,
    SelfOrganizingMap,
    SOMConfig,
    SOMState,
    TrainingCancelledError,
)


def make_som(data, **overrides):
    params = dict(width=3, height=3, epoch=2, initial_learning_rate=0.5,
                  final_learning_rate=0.05, initial_radius=1.5,
                  final_radius=0.5, random_seed=0)
    params.update(overrides)
    som = SelfOrganizingMap(SOMConfig(**params))
    som.get_data(ArrayReader(data))
    return som


def test_som_init(sample_data):
    som = SelfOrganizingMap(SOMConfig(width=5, height=4))
    assert som.state == SOMState.UNCONFIGURED

    som.get_data(ArrayReader(sample_data))
    assert som.state == SOMState.INITIALIZED
    assert som.total_iteration == 20
    assert som.total_global_iteration == 20

    som.initialize_map()
    assert som.grid.weights.shape == (5, 4, 4)


def test_weight_length_excludes_ignored_columns(mixed_dataset):
    mixed_dataset.set_key("id")
    mixed_dataset.set_label("species")
    som = SelfOrganizingMap(SOMConfig(width=2, height=3))
    som.attach_dataset(mixed_dataset)

    som.initialize_map()

    assert all(len(node.weights) == 2 for node in som.nodes())


def test_initialize_map_assigns_new_id(sample_data):
    som = make_som(sample_data)
    som.initialize_map()
    first = som.map_id
    som.initialize_map()
    assert first is not None
    assert som.map_id != first


def test_initialize_without_data():
    som = SelfOrganizingMap(SOMConfig(width=2, height=2))
    with pytest.raises(InvalidStateError):
        som.initialize_map()


def test_train_without_data():
    som = SelfOrganizingMap(SOMConfig(width=2, height=2))
    with pytest.raises(InvalidStateError):
        som.train()


def test_train_empty_dataset():
    som = SelfOrganizingMap(SOMConfig(width=2, height=2))
    som.attach_dataset(Dataset([Feature("a", 0)], []))
    with pytest.raises(InvalidStateError):
        som.train()


def test_find_bmu():
    som = make_som(np.random.rand(5, 3))
    som.initialize_map()
    som.grid.weights.fill(0.0)
    som.grid.weights[2, 1] = np.array([1.0, 1.0, 1.0])

    bmu = som.find_best_matching_unit(np.array([1.0, 1.0, 1.0]))

    assert bmu.coordinate.as_tuple() == (2, 1)


def test_find_bmu_tie_goes_to_first_node():
    som = make_som(np.random.rand(5, 2))
    som.initialize_map()
    som.grid.weights.fill(0.5)

    bmu = som.find_best_matching_unit(np.array([0.5, 0.5]))

    assert bmu.coordinate.as_tuple() == (0, 0)


def test_find_bmu_deterministic(sample_data):
    som = make_som(sample_data)
    som.initialize_map()
    vector = sample_data[3]

    results = {som.find_best_matching_unit(vector).coordinate for _ in range(5)}

    assert len(results) == 1


def test_find_bmu_length_mismatch(sample_data):
    som = make_som(sample_data)
    som.initialize_map()
    with pytest.raises(InvalidStateError):
        som.find_best_matching_unit(np.zeros(3))


def test_training_update(sample_data):
    som = make_som(sample_data)
    som.initialize_map()
    initial_weights = som.grid.weights.copy()

    som.train()

    assert som.state == SOMState.TRAINED
    assert not np.array_equal(initial_weights, som.grid.weights)
    assert som.grid.counts.sum() == som.total_iteration


def test_train_reinitializes_after_previous_run(sample_data):
    som = make_som(sample_data)
    som.train()
    first_id = som.map_id
    som.train()
    assert som.map_id != first_id


def test_train_keeps_explicit_initialization(sample_data):
    som = make_som(sample_data)
    som.initialize_map()
    map_id = som.map_id
    som.train()
    assert som.map_id == map_id


def test_hard_cutoff_update_is_uniform():
    som = make_som(np.random.rand(4, 2), width=3, height=1)
    som.initialize_map()
    som.grid.weights[:] = 0.0
    som.total_global_iteration = 10
    som._learning_rate = ConstantDecay(0.5)
    som._neighborhood_radius = ConstantDecay(1.0)

    som.update_neighborhood(som.grid[0, 0], np.array([1.0, 1.0]), 0)

    np.testing.assert_allclose(som.grid.weights[0, 0], [0.5, 0.5])
    np.testing.assert_allclose(som.grid.weights[1, 0], [0.5, 0.5])
    np.testing.assert_allclose(som.grid.weights[2, 0], [0.0, 0.0])


def test_kernel_update_scales_by_distance():
    som = make_som(np.random.rand(4, 2), width=3, height=1, use_kernel=True)
    som.initialize_map()
    som.grid.weights[:] = 0.0
    som._learning_rate = ConstantDecay(0.5)
    som._neighborhood_radius = ConstantDecay(1.0)

    som.update_neighborhood(som.grid[0, 0], np.array([1.0, 1.0]), 0)

    np.testing.assert_allclose(som.grid.weights[0, 0], [0.5, 0.5])
    expected = 0.5 * np.exp(-0.5)
    np.testing.assert_allclose(som.grid.weights[1, 0], [expected, expected])
    np.testing.assert_allclose(som.grid.weights[2, 0], [0.0, 0.0])


def test_update_stays_between_old_weight_and_instance(sample_data):
    som = make_som(sample_data)
    som.initialize_map()
    before = som.grid.weights.copy()
    vector = sample_data[0]

    bmu = som.find_best_matching_unit(vector)
    som.update_neighborhood(bmu, vector, 5)

    after = som.grid.weights
    low = np.minimum(before, vector)
    high = np.maximum(before, vector)
    assert np.all(after >= low - 1e-12)
    assert np.all(after <= high + 1e-12)


def test_adjust_weights_in_place(sample_data):
    som = make_som(sample_data)
    som.initialize_map()
    node = som.grid[1, 1]
    node.weights = np.zeros(4)

    som.adjust_weights(node, np.ones(4), 0.25)

    np.testing.assert_allclose(som.grid.weights[1, 1], np.full(4, 0.25))


def test_decay_uses_global_iterations(sample_data):
    som = make_som(sample_data, epoch=2, global_epoch=4)
    assert som.total_iteration == 40
    assert som.total_global_iteration == 80
    assert som.get_learning_rate(0) == pytest.approx(0.5)
    assert som.get_learning_rate(80) == pytest.approx(0.05)
    assert som.get_neighborhood_radius(80) == pytest.approx(0.5)


def test_progress_callback(sample_data):
    som = make_som(sample_data)
    calls = []

    som.train(progress=lambda current, total: calls.append((current, total)))

    assert len(calls) == som.total_iteration
    assert calls[0] == (0, 40)
    assert calls[-1] == (39, 40)


def test_progress_does_not_change_result(sample_data):
    plain = make_som(sample_data.copy())
    observed = make_som(sample_data.copy())

    plain.train()
    observed.train(progress=lambda current, total: None)

    np.testing.assert_array_equal(plain.grid.weights, observed.grid.weights)


def test_should_stop_cancels(sample_data):
    som = make_som(sample_data)
    seen = []

    with pytest.raises(TrainingCancelledError) as excinfo:
        som.train(progress=lambda c, t: seen.append(c),
                  should_stop=lambda: len(seen) >= 5)

    assert excinfo.value.iteration == 5
    assert som.state == SOMState.INITIALIZED
    assert not som.is_trained


def test_timeout_cancels(sample_data):
    som = make_som(sample_data)
    with pytest.raises(TrainingCancelledError) as excinfo:
        som.train(timeout=-1.0)
    assert excinfo.value.reason == "timed out"


def test_dimension_change_after_init_is_invalid(mixed_dataset):
    mixed_dataset.set_label("species")
    som = SelfOrganizingMap(SOMConfig(width=2, height=2))
    som.attach_dataset(mixed_dataset)
    som.initialize_map()
    mixed_dataset.set_key("id")

    with pytest.raises(InvalidStateError):
        som.train()


def test_warns_for_data_outside_unit_range():
    som = make_som(np.array([[0.0, 5.0], [1.0, 2.0]]))
    with pytest.warns(UserWarning, match="outside"):
        som.train()


def test_verbose_output(sample_data, capsys):
    som = make_som(sample_data)
    som.train(verbose=True, report_every=10)
    out = capsys.readouterr().out
    assert "Training SOM 3x3" in out
    assert "Iteration 10/40" in out
    assert "QE:" in out


def test_training_history(sample_data):
    som = make_som(sample_data)
    som.train(report_every=10)
    assert [h["iteration"] for h in som.training_history] == [0, 10, 20, 30]
    assert som.training_history[0]["learning_rate"] == pytest.approx(0.5)


def test_diagnostics(sample_data):
    som = make_som(sample_data)
    som.train()

    assert som.get_umatrix().shape == (3, 3)
    assert som.predict_batch(sample_data).shape == (20, 2)
    assert som.get_hit_map(sample_data).sum() == 20
    assert som.get_hit_map().sum() == som.total_iteration
    assert som.get_component_planes().shape == (4, 3, 3)
    assert som.quantization_error() >= 0.0
    assert 0.0 <= som.topographic_error() <= 1.0


def test_predict_matches_batch(sample_data):
    som = make_som(sample_data)
    som.train()
    batch = som.predict_batch(sample_data)
    for vector, expected in zip(sample_data, batch):
        assert som.predict(vector) == tuple(expected)


def test_quantization_error_zero_when_weights_match():
    data = np.array([[0.0, 0.0], [1.0, 1.0]])
    som = make_som(data, width=2, height=1)
    som.initialize_map()
    som.grid.weights[0, 0] = data[0]
    som.grid.weights[1, 0] = data[1]
    assert som.quantization_error() == pytest.approx(0.0)


def test_serialization_round_trip(sample_data):
    som = make_som(sample_data)
    som.train()
    som.grid[0, 0].label = "a"

    data = json.loads(som.to_json())
    restored = SelfOrganizingMap.from_dict(data)

    assert data["map_id"] == str(som.map_id)
    assert len(data["nodes"]) == 9
    assert restored.map_id == som.map_id
    assert restored.state == SOMState.TRAINED
    np.testing.assert_array_equal(restored.grid.weights, som.grid.weights)
    assert restored.grid[0, 0].label == "a"
    np.testing.assert_array_equal(restored.grid.counts, som.grid.counts)


def test_to_dict_before_init():
    som = SelfOrganizingMap(SOMConfig(width=2, height=2))
    with pytest.raises(InvalidStateError):
        som.to_dict()


class ScaledEuclidean(DistanceMeasure):

    def _pairwise(self, a, b):
        return 2.0 * EuclideanDistance()._pairwise(a, b)


def test_custom_distance_needs_explicit_restore(sample_data):
    som = make_som(sample_data)
    som._distance_measure = ScaledEuclidean()
    som.train()
    data = json.loads(som.to_json())
    assert data["distance_measure"] == "custom"

    with pytest.raises(ConfigurationError):
        SelfOrganizingMap.from_dict(data)

    restored = SelfOrganizingMap.from_dict(data, distance_measure=ScaledEuclidean())
    assert restored.quantization_error(sample_data) == pytest.approx(
        som.quantization_error(sample_data))


def test_named_distance_restored(sample_data):
    som = SelfOrganizingMap(
        SOMConfig(width=3, height=3, random_seed=0),
        distance_measure=ManhattanDistance(),
    )
    som.get_data(ArrayReader(sample_data))
    som.train()

    restored = SelfOrganizingMap.from_dict(som.to_dict())

    assert isinstance(restored._distance_measure, ManhattanDistance)

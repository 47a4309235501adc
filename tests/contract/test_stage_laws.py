import numpy as np
import pytest

from convstep import ManualScheduler, Simulator
from convstep.core.dense import neuron_output


def _same(a, b):
    return np.array_equal(a, b, equal_nan=True)


@pytest.fixture
def sim():
    simulator = Simulator()
    yield simulator
    simulator.close()


def test_step_after_completion_is_idempotent(sim):
    sim.run_stage("convolution")
    assert sim.is_complete("convolution")
    before = sim.feature_map.copy()
    record = sim.current_step("convolution")
    assert sim.step("convolution") is None
    assert _same(sim.feature_map, before)
    assert sim.current_step("convolution") is record
    assert sim.progress("convolution").step_index == 26 * 26


def test_reset_then_replay_is_deterministic(sim):
    for _ in range(40):
        sim.step("convolution")
    first = sim.feature_map.copy()
    sim.reset("convolution")
    assert np.isnan(sim.feature_map).all()
    assert sim.progress("convolution").step_index == 0
    for _ in range(40):
        sim.step("convolution")
    assert _same(sim.feature_map, first)

    sim.run_stage("convolution")
    for _ in range(7):
        sim.step("pooling")
    pooled = sim.pooled_map.copy()
    sim.reset("pooling")
    for _ in range(7):
        sim.step("pooling")
    assert _same(sim.pooled_map, pooled)
    assert sim.is_complete("convolution")


@pytest.mark.parametrize("stage", ["activation", "pooling", "flatten", "dense"])
def test_gated_stage_ignores_controls(sim, stage):
    sim.step("convolution")
    before = sim.snapshot()
    assert sim.start_stage(stage) is False
    assert sim.step(stage) is None
    assert sim.toggle_play(stage) is False
    sim.reset(stage)
    progress = sim.progress(stage)
    assert progress.step_index == 0
    assert not progress.is_started
    assert not progress.is_playing
    assert sim.stage(stage).state == "unreachable"
    assert sim.snapshot() == before


def test_dense_waits_for_flatten(sim):
    sim.run_stage("convolution")
    assert sim.step("dense") is None
    sim.run_stage("pooling")
    sim.run_stage("flatten")
    assert sim.step("dense") is not None


def test_configuration_change_cascades(sim):
    sim.run_stage("convolution")
    sim.run_stage("activation")
    sim.step("pooling")
    assert sim.set_padding(1)
    for name in ("convolution", "activation", "pooling"):
        assert sim.progress(name).step_index == 0
    assert sim.feature_map.shape == (28, 28)
    assert np.isnan(sim.feature_map).all()
    assert sim.pooled_map.shape == (14, 14)


def test_source_selection_resets_only_downstream(sim):
    sim.run_stage("convolution")
    sim.run_stage("pooling")
    sim.run_stage("flatten")
    sim.set_flatten_source("raw")
    assert sim.is_complete("pooling")
    assert sim.progress("flatten").step_index == 0
    assert sim.flattened_vector.shape == (26 * 26,)

    sim.run_stage("flatten")
    sim.set_pooling_source("raw")
    assert sim.is_complete("convolution")
    assert sim.progress("pooling").step_index == 0
    assert sim.progress("flatten").step_index == 0


def test_flatten_reads_the_source_captured_when_it_started(sim):
    sim.run_stage("convolution")
    sim.run_stage("pooling")
    pooled = sim.pooled_map.copy()
    for _ in range(3):
        sim.step("flatten")
    sim.reset("pooling")
    assert np.isnan(sim.pooled_map).all()

    sim.run_stage("flatten")
    assert sim.is_complete("flatten")
    assert not np.isnan(sim.flattened_vector).any()
    assert np.array_equal(sim.flattened_vector, pooled.reshape(-1))
    assert np.array_equal(sim.flatten.source_map, pooled)


def test_pooling_activated_source_does_not_need_activation_stage(sim):
    sim.run_stage("convolution")
    sim.run_stage("pooling")
    assert sim.progress("activation").step_index == 0
    relu = np.maximum(sim.feature_map, 0)
    assert sim.pooled_map[0, 0] == relu[0:2, 0:2].max()


def test_dense_neurons_keep_their_own_progress(sim):
    sim.run_stage("convolution")
    sim.run_stage("pooling")
    sim.run_stage("flatten")
    for _ in range(3):
        sim.step("dense")
    assert sim.select_neuron(2)
    sim.step("dense")
    assert sim.progress("dense").step_index == 1
    sim.select_neuron(0)
    assert sim.progress("dense").step_index == 3
    assert not sim.is_complete("dense")
    assert sim.select_neuron(99) is False

    sim.stage("dense").run()
    progress = sim.progress("dense")
    assert progress.is_complete
    assert progress.all_tracks_complete is False
    assert sim.snapshot()["progress"]["dense"]["complete"] is False

    sim.run_stage("dense")
    assert sim.is_complete("dense")
    assert sim.progress("dense").all_tracks_complete is True
    params = sim.dense.parameters
    for neuron in range(sim.config.dense_layer_size):
        expected = neuron_output(sim.flattened_vector, params, neuron)
        assert sim.neuron_outputs[neuron] == pytest.approx(expected)
    assert sim.predicted_class is not None


def test_unset_flatten_inputs_contribute_nothing(sim):
    sim.run_stage("convolution")
    sim.run_stage("flatten")
    assert np.isnan(sim.flattened_vector).all()
    sim.run_stage("dense")
    assert np.allclose(sim.neuron_outputs, sim.dense_biases)


def test_softmax_activation_covers_whole_map(sim):
    sim.set_activation_kind("softmax")
    sim.run_stage("convolution")
    sim.run_stage("activation")
    assert sim.activated_map.sum() == pytest.approx(1.0, abs=1e-6)


def test_global_average_pooling(sim):
    sim.set_pooling_kind("globalAverage")
    sim.run_stage("convolution")
    assert sim.run_stage("pooling") == 1
    assert sim.pooled_map.shape == (1, 1)
    relu = np.maximum(sim.feature_map, 0)
    assert sim.pooled_map[0, 0] == pytest.approx(relu.mean())


def test_autoplay_ticks_and_cancels():
    scheduler = ManualScheduler()
    sim = Simulator(scheduler=scheduler, tick_interval=1.0)
    assert sim.toggle_play("convolution") is True
    scheduler.advance(1.0)
    assert sim.progress("convolution").step_index == 1
    scheduler.advance(4.0)
    assert sim.progress("convolution").step_index == 5
    assert sim.toggle_play("convolution") is False
    assert scheduler.pending == 0

    sim.toggle_play("convolution")
    sim.set_stride(2)
    assert not sim.progress("convolution").is_playing
    assert scheduler.pending == 0

    sim.toggle_play("convolution")
    scheduler.run_until_idle()
    assert sim.is_complete("convolution")
    assert not sim.progress("convolution").is_playing
    assert sim.progress("convolution").step_index == 13 * 13
    sim.close()


def test_step_during_step_is_ignored(sim, monkeypatch):
    controller = sim.stage("convolution")
    original = sim.convolution.execute
    nested = []

    def execute(track, index):
        nested.append(controller.step())
        return original(track, index)

    monkeypatch.setattr(sim.convolution, "execute", execute)
    assert controller.step() is not None
    assert nested == [None]
    assert controller.step_index == 1


def test_callbacks_receive_each_step():
    seen = []
    sim = Simulator(callbacks=[lambda stage, index, record: seen.append((stage, index))])
    sim.step("convolution")
    sim.step("convolution")
    assert seen == [("convolution", 0), ("convolution", 1)]

import numpy as np
import pytest

from convstep.core import activations, convolution, dense, flatten, pooling
from convstep.core.types import null_map


def test_convolution_cell_sum():
    padded = np.array([[10, 20, 30], [40, 50, 60], [70, 80, 90]], dtype=float)
    kernel = np.array([[1, 0, -1], [1, 0, -1], [1, 0, -1]], dtype=float)
    step = convolution.compute_cell(padded, kernel, 0, 0)
    assert step.sum == -60
    assert step.multiplications[1, 2] == -60
    assert np.array_equal(step.input_window, padded)


def test_convolution_stride_and_padding():
    image = np.arange(16, dtype=float).reshape(4, 4)
    padded = convolution.pad_input(image, 1)
    assert padded.shape == (6, 6)
    assert padded[0].sum() == 0
    kernel = np.ones((3, 3))
    out = convolution.convolve(padded, kernel, stride=2)
    assert out.shape == (2, 2)
    assert out[1, 1] == pytest.approx(padded[2:5, 2:5].sum())
    with pytest.raises(IndexError):
        convolution.compute_cell(padded, kernel, 2, 0, stride=2)


def test_relu_and_sigmoid():
    assert activations.activate_cell(-5.0, "relu") == 0
    assert activations.activate_cell(5.0, "relu") == 5
    assert activations.activate_cell(0.0, "sigmoid") == pytest.approx(0.5, abs=1e-6)
    big = activations.sigmoid(np.array([-1000.0, 1000.0]))
    assert np.all(np.isfinite(big))
    assert np.isnan(activations.activate_cell(float("nan"), "relu"))
    with pytest.raises(ValueError):
        activations.activate_cell(1.0, "softmax")


def test_softmax_reference_values():
    probs = activations.activate_dense(np.array([2.0, 1.0, 0.5]), "softmax")
    assert np.allclose(probs, [0.6285, 0.2312, 0.1402], atol=1e-3)
    assert probs.sum() == pytest.approx(1.0, abs=1e-6)
    extreme = activations.softmax(np.array([1e4, 1e4, -1e4]))
    assert extreme.sum() == pytest.approx(1.0, abs=1e-6)
    assert np.allclose(extreme[:2], 0.5)


def test_activate_map_keeps_unset_cells():
    fmap = np.array([[-1.0, np.nan], [2.0, 3.0]])
    relu = activations.activate_map(fmap, "relu")
    assert relu[0, 0] == 0 and np.isnan(relu[0, 1])
    assert np.isnan(activations.activate_map(fmap, "softmax")).all()
    spatial = activations.activate_map(np.array([[1.0, 2.0], [3.0, 4.0]]), "softmax")
    assert spatial.shape == (2, 2)
    assert spatial.sum() == pytest.approx(1.0)


def test_predicted_class_waits_for_every_output():
    assert activations.predicted_class(np.array([0.1, np.nan])) is None
    assert activations.predicted_class(np.array([0.3, 0.3, 0.1])) == 0


def test_pooling_window_reductions():
    window = np.array([[1.0, 9.0], [3.0, 4.0]])
    assert pooling.reduce_window(window, "max") == (9.0, (0, 1))
    assert pooling.reduce_window(window, "min") == (1.0, (0, 0))
    assert pooling.reduce_window(window, "average") == (4.25, None)
    partial = window.copy()
    partial[1, 1] = np.nan
    assert pooling.reduce_window(partial, "max") == (None, None)


def test_pooling_ties_keep_first_row_major_winner():
    tied = np.array([[5.0, 5.0], [1.0, 5.0]])
    assert pooling.reduce_window(tied, "max") == (5.0, (0, 0))
    assert pooling.reduce_window(tied, "min") == (1.0, (1, 0))
    flat = np.full((2, 2), 2.0)
    assert pooling.reduce_window(flat, "min") == (2.0, (0, 0))


def test_pool_step_ignores_trailing_odd_row():
    source = np.arange(25, dtype=float).reshape(5, 5)
    step = pooling.pool_step(source, 3, 2, "max")
    assert (step.row, step.col) == (1, 1)
    assert step.value == source[3, 3]


def test_global_average_guards_unset_maps():
    assert pooling.global_average(null_map(3)).value is None
    source = np.array([[1.0, np.nan], [3.0, 5.0]])
    assert pooling.global_average(source).value == pytest.approx(3.0)


def test_flatten_row_major():
    source = np.arange(9, dtype=float).reshape(3, 3)
    vector = flatten.flatten(source)
    assert vector.shape == (9,)
    assert vector[5] == source[1][2]
    step = flatten.flatten_row(source, 2)
    assert step.start_index == 6
    assert flatten.conform_source(np.zeros((4, 4)), 3).shape == (3, 3)
    assert np.isnan(flatten.conform_source(np.zeros((4, 4)), 3)).all()


def test_dense_steps_accumulate_to_reference():
    params = dense.init_dense_parameters(4, 3, seed=1)
    again = dense.init_dense_parameters(4, 3, seed=1)
    assert np.array_equal(params.weights, again.weights)
    vector = np.array([1.0, -2.0, np.nan, 0.5])
    acc = dense.NeuronAccumulator(1)
    steps = [acc.advance(vector, params) for _ in range(4)]
    assert steps[2].product == 0.0
    assert steps[-1].output is not None and steps[0].output is None
    expected = float(np.nansum(vector * params.weights[1]) + params.biases[1])
    assert steps[-1].output == pytest.approx(expected)
    assert dense.neuron_output(vector, params, 1) == pytest.approx(expected)


def test_dense_with_no_inputs_outputs_bias():
    params = dense.init_dense_parameters(0, 2, seed=3)
    assert dense.neuron_output(np.zeros(0), params, 1) == params.biases[1]

import numpy as np

from convstep.core import correlation
from convstep.core.convolution import convolve, pad_input


def test_flatten_index_round_trip():
    size = 13
    for index in range(size * size):
        row, col = correlation.flatten_position_of(index, size)
        assert correlation.flatten_index_of(row, col, size) == index


def test_convolution_contributors_report_dominant_product():
    image = np.arange(25, dtype=float).reshape(5, 5)
    kernel = np.array([[1, 0, -1], [1, 0, -1], [1, 0, -1]], dtype=float)
    padded = pad_input(image, 0)
    fmap = convolve(padded, kernel, 1)
    found = correlation.convolution_contributors(padded, kernel, fmap, 1, 1, 2)
    assert found.origin == (1, 2)
    assert found.sum == fmap[1, 2]
    assert found.dominant == (2, 2)
    fmap[0, 0] = np.nan
    assert correlation.convolution_contributors(padded, kernel, fmap, 1, 0, 0) is None


def test_pooling_contributors():
    source = np.array([[1.0, 9.0, 0.0, 0.0], [3.0, 4.0, 0.0, 0.0]])
    pooled = np.array([[9.0, 0.0]])
    found = correlation.pooling_contributors(source, pooled, "max", 0, 0)
    assert found.winner == (0, 1)
    assert found.cells == ((0, 0), (0, 1), (1, 0), (1, 1))
    average = correlation.pooling_contributors(source, np.array([[4.25, 0.0]]), "average", 0, 0)
    assert average.winner is None


def test_dense_contributors_top_k():
    vector = np.array([1.0, 2.0, np.nan, -4.0])
    weights = np.array([[1.0, 1.0, 1.0, 1.0]])
    top = correlation.dense_contributors(vector, weights, 0, k=2)
    assert [item.index for item in top] == [3, 1]
    assert top[0].product == -4.0


def test_dominant_prefers_first_cell_on_equal_magnitude():
    products = np.array([[-3.0, 0.0, 3.0], [0.0, 0.0, 0.0], [0.0, 0.0, 3.0]])
    assert correlation._dominant(products) == (0, 0)
    assert correlation._dominant(np.zeros((3, 3))) == (0, 0)


def test_queries_outside_the_map_return_none():
    image = np.arange(25, dtype=float).reshape(5, 5)
    kernel = np.ones((3, 3))
    padded = pad_input(image, 0)
    fmap = convolve(padded, kernel, 1)
    assert correlation.convolution_contributors(padded, kernel, fmap, 1, 3, 0) is None
    assert correlation.convolution_contributors(padded, kernel, fmap, 1, -1, 0) is None

    source = np.array([[1.0, 9.0, 0.0, 0.0], [3.0, 4.0, 0.0, 0.0]])
    pooled = np.array([[9.0, 0.0]])
    assert correlation.pooling_contributors(source, pooled, "max", -1, -1) is None
    assert correlation.pooling_contributors(source, pooled, "max", 0, 2) is None

    assert correlation.activation_source(fmap, fmap, -1, -1) is None
    assert correlation.activation_source(fmap, fmap, 0, 3) is None
    assert correlation.activation_source(fmap, fmap, 2, 2) == (fmap[2, 2], fmap[2, 2])

    weights = np.ones((2, 4))
    assert correlation.dense_contributors(np.ones(4), weights, 2) == []
    assert correlation.dense_contributors(np.ones(4), weights, -1) == []

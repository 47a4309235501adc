import pytest

from convstep.core import shapes


@pytest.mark.parametrize(
    "padding,stride,expected",
    [(0, 1, 26), (1, 1, 28), (2, 1, 30), (0, 2, 13), (1, 2, 14), (2, 2, 15)],
)
def test_conv_output_size_matches_formula(padding, stride, expected):
    size = shapes.conv_output_size(28, 3, padding, stride)
    assert size == (28 - 3 + 2 * padding) // stride + 1 == expected
    derived = shapes.compute_shapes(
        padding=padding,
        stride=stride,
        pooling_kind="max",
        flatten_source="pooled",
        dense_layer_size=10,
    )
    assert derived.conv_steps == expected**2


def test_conv_output_size_clamps_at_zero():
    assert shapes.conv_output_size(2, 3, 0, 1) == 0
    with pytest.raises(ValueError):
        shapes.conv_output_size(28, 3, 0, 0)


def test_pool_output_size():
    assert shapes.pool_output_size(26, "max") == 13
    assert shapes.pool_output_size(13, "average") == 6
    assert shapes.pool_output_size(15, "globalAverage") == 1
    assert shapes.pool_output_size(0, "globalAverage") == 0


def test_flatten_source_sizes_follow_selection():
    kwargs = dict(padding=0, stride=1, pooling_kind="max", dense_layer_size=5)
    pooled = shapes.compute_shapes(flatten_source="pooled", **kwargs)
    raw = shapes.compute_shapes(flatten_source="raw", **kwargs)
    assert pooled.flatten_source_size == 13
    assert pooled.dense_input_length == 169
    assert raw.dense_input_length == 26 * 26
    assert raw.flatten_steps == 26
    assert pooled.total_steps == 26 * 26 * 2 + 13 * 13 + 13 + 169 * 5
    with pytest.raises(ValueError):
        shapes.flatten_source_size(26, 13, "bogus")

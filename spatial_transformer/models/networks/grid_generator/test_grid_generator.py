import pytest
import torch
import torch.nn.functional as F

from spatial_transformer.errors import InvalidDimensionError, ShapeMismatchError
from spatial_transformer.models.networks.grid_generator import (
    build_grid, effective_affine, affine_grid_generator)


def identity_thetas(B, dtype=torch.float32):
    return torch.tensor([1, 0, 0, 1, 0, 0], dtype=dtype).repeat(B, 1)


def test_grid_shape_and_homogeneous_row():
    grid = build_grid(width=5, height=3, batch_size=4)
    assert grid.shape == (4, 3, 15)
    assert torch.equal(grid[:, 2], torch.ones(4, 15))


def test_grid_is_deterministic():
    assert torch.equal(build_grid(7, 4, 2), build_grid(7, 4, 2))


def test_grid_identical_across_batch():
    grid = build_grid(6, 5, 3)
    assert torch.equal(grid[0], grid[1])
    assert torch.equal(grid[0], grid[2])


def test_grid_flattening_is_row_major():
    W, H = 5, 3
    grid = build_grid(W, H, 1)[0]
    xs = torch.linspace(-1, 1, W)
    ys = torch.linspace(-1, 1, H)
    for n in range(W * H):
        assert grid[0, n] == xs[n % W]
        assert grid[1, n] == ys[n // W]


def test_grid_spans_normalized_range():
    grid = build_grid(4, 9, 1)
    assert grid[0, 0].min() == -1 and grid[0, 0].max() == 1
    assert grid[0, 1].min() == -1 and grid[0, 1].max() == 1


def test_grid_follows_dtype():
    assert build_grid(3, 3, 1, dtype=torch.float64).dtype == torch.float64


@pytest.mark.parametrize("width,height,batch_size", [
    (0, 4, 1), (4, -1, 1), (4, 4, 0), (2.5, 4, 1), (True, 4, 1),
])
def test_grid_rejects_bad_dimensions(width, height, batch_size):
    with pytest.raises(InvalidDimensionError):
        build_grid(width, height, batch_size)


def test_effective_affine_couples_translation_to_scale():
    thetas = torch.tensor([[2.0, 0.3, -0.4, 3.0, 0.5, -0.25]])
    matrix = effective_affine(thetas)
    expected = torch.tensor([[[2.0, 0.3, 1.0], [-0.4, 3.0, -0.75]]])
    assert torch.allclose(matrix, expected)


def test_effective_affine_does_not_modify_input():
    thetas = torch.tensor([[2.0, 0.0, 0.0, 2.0, 0.5, 0.5]])
    before = thetas.clone()
    effective_affine(thetas)
    assert torch.equal(thetas, before)


def test_identity_thetas_reproduce_grid():
    H, W, B = 4, 6, 2
    grid = build_grid(W, H, B)
    coords = affine_grid_generator(grid, identity_thetas(B), H, W)
    assert coords.shape == (B, 2, H, W)
    assert torch.allclose(coords.view(B, 2, H * W), grid[:, :2])


def test_matches_torch_affine_grid():
    torch.manual_seed(0)
    H, W, B = 5, 7, 3
    thetas = torch.randn(B, 6)
    coords = affine_grid_generator(build_grid(W, H, B), thetas, H, W)

    reference = F.affine_grid(effective_affine(thetas), (B, 1, H, W), align_corners=True)
    assert torch.allclose(coords.permute(0, 2, 3, 1), reference, atol=1e-5)


def test_gradients_reach_thetas():
    thetas = torch.randn(2, 6, dtype=torch.float64, requires_grad=True)
    grid = build_grid(4, 3, 2, dtype=torch.float64)
    assert torch.autograd.gradcheck(lambda t: affine_grid_generator(grid, t, 3, 4), (thetas,))


def test_rejects_batch_mismatch():
    with pytest.raises(ShapeMismatchError):
        affine_grid_generator(build_grid(4, 4, 3), identity_thetas(2), 4, 4)


def test_rejects_wrong_output_size():
    with pytest.raises(ShapeMismatchError):
        affine_grid_generator(build_grid(4, 4, 2), identity_thetas(2), 4, 5)


def test_rejects_malformed_thetas():
    with pytest.raises(ShapeMismatchError):
        affine_grid_generator(build_grid(4, 4, 2), torch.zeros(2, 2, 3), 4, 4)

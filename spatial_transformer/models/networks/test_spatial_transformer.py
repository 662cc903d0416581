import logging
import threading

import pytest
import torch
from pydantic import ValidationError

from spatial_transformer.errors import ShapeMismatchError
from spatial_transformer.models.networks import SpatialTransformer, TransformerConfig, PaddingMode


def make_stn(H, W, **kwargs):
    return SpatialTransformer(TransformerConfig(output_height=H, output_width=W, **kwargs))


def identity(B):
    return torch.tensor([1.0, 0.0, 0.0, 1.0, 0.0, 0.0]).repeat(B, 1)


def test_identity_transform_returns_input():
    torch.manual_seed(0)
    image = torch.rand(4, 1, 28, 28)
    output = make_stn(28, 28).warp(image, identity(4))
    assert torch.allclose(output, image, atol=1e-5)


def test_output_resolution_follows_config():
    image = torch.rand(2, 3, 20, 30)
    assert make_stn(10, 12)(image, identity(2)).shape == (2, 3, 10, 12)


def test_translation_is_scaled_by_diagonal():
    # single bright pixel in the bottom-right corner
    image = torch.zeros(1, 1, 5, 5)
    image[0, 0, 4, 4] = 1.0
    thetas = torch.tensor([[2.0, 0.0, 0.0, 2.0, 0.5, 0.5]])

    output = make_stn(5, 5)(image, thetas)

    # x_in = 2 * x_out + 2 * 0.5, so x_in = 1 (the corner) at x_out = 0 (the centre)
    assert output[0, 0, 2, 2].item() == pytest.approx(1.0)
    assert output.sum().item() == pytest.approx(1.0)


def test_batch_elements_are_independent():
    torch.manual_seed(3)
    image = torch.rand(4, 2, 9, 9)
    thetas = identity(4) + 0.3 * torch.randn(4, 6)
    stn = make_stn(7, 7)

    output = stn(image, thetas)
    perm = torch.tensor([2, 0, 3, 1])
    permuted = stn(image[perm], thetas[perm])
    assert torch.allclose(permuted, output[perm], atol=1e-6)


def test_grid_cached_per_batch_size():
    stn = make_stn(6, 6)
    image = torch.rand(3, 1, 6, 6)
    stn(image, identity(3))
    grid = stn.sampling_grid
    stn(image, identity(3))
    assert stn.sampling_grid is grid

    stn(image[:2], identity(2))
    assert stn.sampling_grid.size(0) == 2


def test_grid_prebuilt_and_not_checkpointed():
    stn = make_stn(4, 5, batch_size=8)
    assert stn.sampling_grid.shape == (8, 3, 20)
    assert "sampling_grid" not in stn.state_dict()


def test_grid_follows_dtype():
    stn = make_stn(4, 4)
    stn(torch.rand(1, 1, 4, 4, dtype=torch.float64), identity(1).double())
    assert stn.sampling_grid.dtype == torch.float64


def test_concurrent_warps_agree():
    stn = make_stn(8, 8)
    image = torch.rand(5, 1, 8, 8)
    thetas = identity(5)
    expected = stn(image, thetas)
    stn.sampling_grid = None

    results = [None] * 4

    def worker(i):
        results[i] = stn(image, thetas)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    for r in results:
        assert torch.allclose(r, expected)


def test_gradients_flow_to_thetas_and_image():
    image = torch.rand(2, 1, 6, 6, requires_grad=True)
    thetas = (identity(2) + 0.1 * torch.randn(2, 6)).requires_grad_()
    make_stn(6, 6)(image, thetas).sum().backward()
    assert thetas.grad is not None and thetas.grad.abs().sum() > 0
    assert image.grad is not None and image.grad.abs().sum() > 0


def test_degenerate_transform_warns(caplog):
    thetas = torch.zeros(2, 6)
    with caplog.at_level(logging.WARNING):
        output = make_stn(4, 4)(torch.rand(2, 1, 4, 4), thetas)
    assert output.shape == (2, 1, 4, 4)
    assert "singular" in caplog.text


def test_diverged_thetas_give_blank_output():
    thetas = identity(2)
    thetas[1] = float("nan")
    image = torch.rand(2, 1, 5, 5)
    output = make_stn(5, 5)(image, thetas)
    assert torch.allclose(output[0], image[0], atol=1e-5)
    assert torch.equal(output[1], torch.zeros(1, 5, 5))


def test_rejects_thetas_batch_mismatch():
    with pytest.raises(ShapeMismatchError):
        make_stn(4, 4)(torch.rand(3, 1, 4, 4), identity(2))


def test_config_validation():
    with pytest.raises(ValidationError):
        TransformerConfig(output_height=0, output_width=4)
    config = TransformerConfig(output_height=4, output_width=4, padding_mode="border")
    assert config.padding_mode is PaddingMode.BORDER

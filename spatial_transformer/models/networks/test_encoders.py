import pytest
import torch

from spatial_transformer.models.networks import define_L, define_C, define_STN, IDENTITY_THETA


@pytest.mark.parametrize("size", [(28, 28), (60, 60)])
def test_localization_starts_at_identity(size):
    net = define_L(size)
    thetas = net(torch.rand(3, 1, *size))
    assert thetas.shape == (3, 6)
    assert torch.allclose(thetas, torch.tensor(IDENTITY_THETA).repeat(3, 1))


def test_localization_flattened_features_for_mnist():
    assert define_L((28, 28)).fc_loc[0].in_features == 1280


def test_classifier_outputs_log_probabilities():
    net = define_C((28, 28), num_classes=10)
    assert net.fc[0].in_features == 800
    pred = net(torch.rand(5, 1, 28, 28))
    assert pred.shape == (5, 10)
    assert torch.allclose(pred.exp().sum(dim=1), torch.ones(5), atol=1e-5)


def test_too_small_input_is_rejected():
    with pytest.raises(ValueError):
        define_L((8, 8))


def test_localized_warp_is_identity_at_init():
    x = torch.rand(2, 1, 28, 28)
    stn = define_STN((28, 28))
    assert torch.allclose(stn(x, define_L((28, 28))(x)), x, atol=1e-5)


def test_localization_convs_are_linear():
    # only the regressor head is rectified
    net = define_L((28, 28))
    assert not any(isinstance(m, torch.nn.ReLU) for m in net.features.modules())
    assert any(isinstance(m, torch.nn.ReLU) for m in define_C((28, 28)).features.modules())

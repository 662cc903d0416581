import torch
import torch.nn as nn
import torch.nn.functional as F

IDENTITY_THETA = (1.0, 0.0, 0.0, 1.0, 0.0, 0.0)


# Utility for building conv block
def conv_block(in_channels, out_channels, kernel_size=3, stride=1, padding=0, relu=True, pool=False):
    layers = [nn.Conv2d(in_channels, out_channels, kernel_size, stride, padding)]

    if relu:
        layers.append(nn.ReLU(inplace=True))

    if pool:
        layers.append(nn.MaxPool2d(2))

    return nn.Sequential(*layers)


def conv_output_size(size, kernel_size, pool=False):
    # valid (unpadded) stride-1 convolution, optionally followed by 2x2 max pooling
    size = size - kernel_size + 1
    return size // 2 if pool else size


class LocalizationNet(nn.Module):
    """Regresses the 6 affine parameters [a, b, c, d, tx, ty] from an image."""

    def __init__(self, in_size=(28, 28), input_nc=1, ngf=20, hidden=50):
        super(LocalizationNet, self).__init__()
        h, w = in_size
        h, w = conv_output_size(h, 5, pool=True), conv_output_size(w, 5, pool=True)
        h, w = conv_output_size(h, 5), conv_output_size(w, 5)
        if h <= 0 or w <= 0:
            raise ValueError(f"Input size {in_size} is too small for the localization network")

        self.features = nn.Sequential(
            conv_block(input_nc, ngf, kernel_size=5, relu=False, pool=True),
            conv_block(ngf, ngf, kernel_size=5, relu=False),
        )
        self.fc_loc = nn.Sequential(
            nn.Linear(ngf * h * w, hidden), nn.ReLU(inplace=True),
            nn.Linear(hidden, 6),
        )
        # start precisely at identity
        self.fc_loc[2].weight.data.zero_()
        self.fc_loc[2].bias.data.copy_(torch.tensor(IDENTITY_THETA, dtype=torch.float))

    def forward(self, x):
        xs = self.features(x)
        return self.fc_loc(xs.flatten(1))


class Classifier(nn.Module):
    def __init__(self, in_size=(28, 28), num_classes=10, input_nc=1, ngf=32, hidden=256):
        super(Classifier, self).__init__()
        h, w = in_size
        for _ in range(2):
            h, w = conv_output_size(h, 3, pool=True), conv_output_size(w, 3, pool=True)
        if h <= 0 or w <= 0:
            raise ValueError(f"Input size {in_size} is too small for the classifier")

        self.features = nn.Sequential(
            conv_block(input_nc, ngf, kernel_size=3, pool=True),
            conv_block(ngf, ngf, kernel_size=3, pool=True),
        )
        self.fc = nn.Sequential(
            nn.Linear(ngf * h * w, hidden), nn.ReLU(inplace=True),
            nn.Linear(hidden, num_classes),
        )

    def forward(self, x):
        """Returns log-probabilities of shape (B, num_classes)."""
        x = self.features(x)
        return F.log_softmax(self.fc(x.flatten(1)), dim=1)

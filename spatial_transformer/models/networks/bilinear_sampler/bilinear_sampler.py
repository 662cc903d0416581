from enum import Enum

import torch
import torch.nn as nn

from spatial_transformer.errors import ShapeMismatchError


class PaddingMode(str, Enum):
    ZEROS = "zeros"      # out-of-bounds neighbours contribute 0
    BORDER = "border"    # coordinates clamped to the edge pixels


def _gather_pixels(flat_image, x, y, width, height):
    """
    flat_image: (B, C, H * W)
    x, y: (B, Hout, Wout) integer-valued float tensors
    Returns: (B, C, Hout, Wout), zero wherever (x, y) falls outside the image
    """
    B, C, _ = flat_image.size()
    Hout, Wout = x.shape[1:]

    inside = (x >= 0) & (x <= width - 1) & (y >= 0) & (y <= height - 1)

    # clamped only so the gather stays in range, the mask zeroes those reads
    xi = x.clamp(0, width - 1).long()
    yi = y.clamp(0, height - 1).long()
    index = (yi * width + xi).view(B, 1, Hout * Wout).expand(-1, C, -1)

    values = flat_image.gather(2, index).view(B, C, Hout, Wout)
    return values * inside.unsqueeze(1).to(values.dtype)


def bilinear_sample(image, coords, padding_mode=PaddingMode.ZEROS):
    """
    image: (B, C, Hin, Win)
    coords: (B, 2, Hout, Wout) normalized (x, y), not required to stay in [-1, 1]
    Returns: (B, C, Hout, Wout)
    """
    padding_mode = PaddingMode(padding_mode)

    if image.dim() != 4:
        raise ShapeMismatchError(f"Expected image of shape (B, C, H, W), got {tuple(image.shape)}")
    if coords.dim() != 4 or coords.size(1) != 2:
        raise ShapeMismatchError(f"Expected coords of shape (B, 2, H, W), got {tuple(coords.shape)}")
    if image.size(0) != coords.size(0):
        raise ShapeMismatchError(
            f"Batch size mismatch: image has {image.size(0)}, coords has {coords.size(0)}")

    B, C, H, W = image.size()
    coords = coords.to(dtype=image.dtype)

    # normalized -> pixel space, -1 and 1 land on the outer pixel centres
    x = (coords[:, 0] + 1.0) * (W - 1) / 2.0
    y = (coords[:, 1] + 1.0) * (H - 1) / 2.0

    if padding_mode is PaddingMode.BORDER:
        x = x.clamp(0, W - 1)
        y = y.clamp(0, H - 1)

    # non-finite positions (from diverged thetas) sample fully outside the image
    x = torch.where(torch.isfinite(x), x, torch.full_like(x, -2.0))
    y = torch.where(torch.isfinite(y), y, torch.full_like(y, -2.0))

    # grab 4 nearest corner points for each (x_i, y_i)
    x0 = torch.floor(x)
    x1 = x0 + 1
    y0 = torch.floor(y)
    y1 = y0 + 1

    flat_image = image.reshape(B, C, H * W)
    Ia = _gather_pixels(flat_image, x0, y0, W, H)
    Ib = _gather_pixels(flat_image, x0, y1, W, H)
    Ic = _gather_pixels(flat_image, x1, y0, W, H)
    Id = _gather_pixels(flat_image, x1, y1, W, H)

    # corner weights, floor() carries no gradient so coords get theirs from here
    wa = ((x1 - x) * (y1 - y)).unsqueeze(1)
    wb = ((x1 - x) * (y - y0)).unsqueeze(1)
    wc = ((x - x0) * (y1 - y)).unsqueeze(1)
    wd = ((x - x0) * (y - y0)).unsqueeze(1)

    return wa * Ia + wb * Ib + wc * Ic + wd * Id


class BilinearSampler(nn.Module):
    def __init__(self, padding_mode=PaddingMode.ZEROS):
        super(BilinearSampler, self).__init__()
        self.padding_mode = PaddingMode(padding_mode)

    def forward(self, image, coords):
        """
        image: (B, C, Hin, Win)
        coords: (B, 2, Hout, Wout) - normalized sampling positions (x, y)
        Returns: image resampled at coords
        """
        return bilinear_sample(image, coords, self.padding_mode)

    def extra_repr(self):
        return f"padding_mode={self.padding_mode.value}"

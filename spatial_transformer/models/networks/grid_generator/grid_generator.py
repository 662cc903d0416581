import numbers

import torch

from spatial_transformer.errors import InvalidDimensionError, ShapeMismatchError


def _check_positive(name, value):
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value <= 0:
        raise InvalidDimensionError(f"{name} must be a positive integer, got {value!r}")


def build_grid(width, height, batch_size, dtype=torch.float32, device=None):
    """
    Normalized homogeneous sampling grid.

    Returns: (batch_size, 3, height * width) with rows (x, y, 1).
    The flattened index is n = y * width + x, so x varies fastest.
    """
    _check_positive("width", width)
    _check_positive("height", height)
    _check_positive("batch_size", batch_size)

    x = torch.linspace(-1.0, 1.0, width, dtype=dtype, device=device)
    y = torch.linspace(-1.0, 1.0, height, dtype=dtype, device=device)

    # Create mesh grid
    grid_y, grid_x = torch.meshgrid(y, x, indexing='ij')  # (H, W)
    ones = torch.ones_like(grid_x)
    grid = torch.stack((grid_x, grid_y, ones), dim=0).view(3, height * width)

    return grid.unsqueeze(0).repeat(batch_size, 1, 1)


def effective_affine(thetas):
    """
    thetas: (B, 6) laid out as [a, b, c, d, tx, ty]
    Returns: (B, 2, 3) matrices [[a, b, a * tx], [c, d, d * ty]]
    """
    if thetas.dim() != 2 or thetas.size(1) != 6:
        raise ShapeMismatchError(f"Expected thetas of shape (B, 6), got {tuple(thetas.shape)}")

    a, b, c, d, tx, ty = thetas.unbind(dim=1)
    # translation is expressed in units of the matching diagonal scale
    return torch.stack((a, b, a * tx, c, d, d * ty), dim=1).view(-1, 2, 3)


def affine_grid_generator(grid, thetas, output_height, output_width):
    """
    grid: (B, 3, N) from build_grid
    thetas: (B, 6)
    Returns: (B, 2, output_height, output_width), channel 0 = x, channel 1 = y
    """
    matrix = effective_affine(thetas)

    if grid.dim() != 3 or grid.size(1) != 3:
        raise ShapeMismatchError(f"Expected grid of shape (B, 3, N), got {tuple(grid.shape)}")
    if grid.size(0) != thetas.size(0):
        raise ShapeMismatchError(
            f"Batch size mismatch: grid has {grid.size(0)}, thetas has {thetas.size(0)}")
    if grid.size(2) != output_height * output_width:
        raise ShapeMismatchError(
            f"Grid has {grid.size(2)} points, cannot reshape to {output_height}x{output_width}")

    transformed_grid = torch.bmm(matrix, grid.to(dtype=matrix.dtype))  # (B, 2, N)
    return transformed_grid.view(-1, 2, output_height, output_width)

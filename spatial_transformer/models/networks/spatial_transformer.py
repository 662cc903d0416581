import logging
import threading
from typing import Optional

import torch
import torch.nn as nn
from pydantic import BaseModel, ConfigDict, PositiveInt

from spatial_transformer.errors import ShapeMismatchError
from .grid_generator import build_grid, affine_grid_generator
from .bilinear_sampler import BilinearSampler, PaddingMode

logger = logging.getLogger(__name__)

# Guards grid rebuilds; a published grid is never mutated, so reads skip it.
_grid_lock = threading.Lock()

DEGENERATE_DET = 1e-6


class TransformerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    output_height: PositiveInt
    output_width: PositiveInt
    padding_mode: PaddingMode = PaddingMode.ZEROS
    # Build the grid up front for this batch size (optional)
    batch_size: Optional[PositiveInt] = None


class SpatialTransformer(nn.Module):
    """
    Warps a batch of images with one affine transform per element.

    The transform parameters come from outside (a localization network or
    the caller), laid out per element as [a, b, c, d, tx, ty].
    """

    def __init__(self, config: TransformerConfig):
        super(SpatialTransformer, self).__init__()
        self.config = config
        self.output_height = config.output_height
        self.output_width = config.output_width
        self.sampler = BilinearSampler(config.padding_mode)

        self.register_buffer("sampling_grid", None, persistent=False)
        if config.batch_size is not None:
            self.sampling_grid = build_grid(self.output_width, self.output_height, config.batch_size)

    def _grid_is_stale(self, grid, batch_size, dtype, device):
        return (grid is None or grid.size(0) != batch_size
                or grid.dtype != dtype or grid.device != device)

    def get_sampling_grid(self, batch_size, dtype=torch.float32, device=None):
        device = torch.device(device) if device is not None else torch.device("cpu")
        grid = self.sampling_grid
        if not self._grid_is_stale(grid, batch_size, dtype, device):
            return grid

        with _grid_lock:
            grid = self.sampling_grid
            if self._grid_is_stale(grid, batch_size, dtype, device):
                logger.debug("Building %dx%d sampling grid for batch size %d on %s",
                             self.output_height, self.output_width, batch_size, device)
                grid = build_grid(self.output_width, self.output_height, batch_size,
                                  dtype=dtype, device=device)
                self.sampling_grid = grid
        return grid

    def forward(self, image, thetas):
        """
        image: (B, C, Hin, Win)
        thetas: (B, 6)
        Returns: (B, C, output_height, output_width)
        """
        if image.dim() != 4:
            raise ShapeMismatchError(f"Expected image of shape (B, C, H, W), got {tuple(image.shape)}")
        if thetas.dim() != 2 or thetas.size(0) != image.size(0):
            raise ShapeMismatchError(
                f"thetas {tuple(thetas.shape)} do not match image batch of {image.size(0)}")

        self._check_degenerate(thetas)

        grid = self.get_sampling_grid(image.size(0), dtype=image.dtype, device=image.device)
        coords = affine_grid_generator(grid, thetas, self.output_height, self.output_width)
        return self.sampler(image, coords)

    def warp(self, image_batch, affine_params):
        return self(image_batch, affine_params)

    @torch.no_grad()
    def _check_degenerate(self, thetas):
        det = thetas[:, 0] * thetas[:, 3] - thetas[:, 1] * thetas[:, 2]
        n_degenerate = int((det.abs() < DEGENERATE_DET).sum())
        if n_degenerate:
            logger.warning("%d of %d affine transforms are (near-)singular, "
                           "warped output may collapse", n_degenerate, thetas.size(0))

    def extra_repr(self):
        return f"output_size=({self.output_height}, {self.output_width})"

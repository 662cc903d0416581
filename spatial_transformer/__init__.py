from .errors import SpatialTransformerError, ShapeMismatchError, InvalidDimensionError
from .models.networks.grid_generator import build_grid, effective_affine, affine_grid_generator
from .models.networks.bilinear_sampler import PaddingMode, BilinearSampler, bilinear_sample
from .models.networks.spatial_transformer import TransformerConfig, SpatialTransformer

__version__ = "0.1.0"

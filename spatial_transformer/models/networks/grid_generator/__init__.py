from .grid_generator import build_grid, effective_affine, affine_grid_generator

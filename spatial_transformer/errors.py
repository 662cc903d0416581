class SpatialTransformerError(Exception):
    pass


class ShapeMismatchError(SpatialTransformerError, ValueError):
    """Cooperating tensors disagree on batch, channel or spatial dimensions."""


class InvalidDimensionError(SpatialTransformerError, ValueError):
    """A grid dimension is not a positive integer."""

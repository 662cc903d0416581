import os
import torch
import logging
from spatial_transformer.models import create_model
from stn_app.config.settings import settings

logger = logging.getLogger(__name__)

_stn_model = None


def get_device(name=None):
    name = name or settings.DEVICE
    if name.startswith("cuda"):
        if torch.cuda.is_available():
            logger.info("Using CUDA device")
            return torch.device(name)
        logger.warning("CUDA requested but not available, falling back to CPU")
    logger.info("Using CPU device")
    return torch.device("cpu")


class InferenceOptions:
    """Settings view with training switched off."""

    def __init__(self, opt):
        self._opt = opt
        self.isTrain = False
        self.BATCH_SIZE = 1

    def __getattr__(self, name):
        return getattr(self._opt, name)


def load_stn_model(checkpoint_path=None, opt=None):
    global _stn_model
    if _stn_model is not None:
        return _stn_model

    if opt is None:
        opt = settings
    checkpoint_path = checkpoint_path or opt.MODEL_CHECKPOINT_PATH

    try:
        logger.info("Loading STN model...")
        device = get_device(opt.DEVICE)

        model = create_model(InferenceOptions(opt), device=device)
        if os.path.exists(checkpoint_path):
            model.load_networks(checkpoint_path)
        else:
            raise FileNotFoundError(f"Checkpoint not found at: {checkpoint_path}")
        model.eval()

        # Warm-up run to initialize model
        logger.info("Running warm-up inference...")
        dummy_input = torch.zeros(1, 1, opt.IMG_HEIGHT, opt.IMG_WIDTH, device=device)
        with torch.no_grad():
            _ = model.netC(model.transform_image(dummy_input))

        logger.info("STN model loaded successfully")
        _stn_model = model
        return _stn_model

    except Exception as e:
        logger.exception(f"Failed to load STN model: {str(e)}")
        raise RuntimeError(f"Model loading failed: {str(e)}") from e


def reset_model_cache():
    global _stn_model
    _stn_model = None

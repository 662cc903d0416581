import logging

from .stn_model import STNModel, accuracy

logger = logging.getLogger(__name__)


def create_model(opt, device=None):
    model = STNModel(opt, device=device)
    logger.info("Model [%s] was created", type(model).__name__)
    return model

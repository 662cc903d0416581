import logging

from .encoders import LocalizationNet, Classifier, conv_block, IDENTITY_THETA
from .spatial_transformer import SpatialTransformer, TransformerConfig
from .bilinear_sampler import PaddingMode

logger = logging.getLogger(__name__)


def define_L(in_size, input_nc=1, device=None):
    net = LocalizationNet(in_size=in_size, input_nc=input_nc)
    logger.debug("Localization network: %s", net)
    return net.to(device) if device is not None else net


def define_C(in_size, num_classes=10, input_nc=1, device=None):
    net = Classifier(in_size=in_size, num_classes=num_classes, input_nc=input_nc)
    logger.debug("Classifier network: %s", net)
    return net.to(device) if device is not None else net


def define_STN(output_size, padding_mode=PaddingMode.ZEROS, batch_size=None, device=None):
    config = TransformerConfig(output_height=output_size[0], output_width=output_size[1],
                               padding_mode=padding_mode, batch_size=batch_size)
    net = SpatialTransformer(config)
    return net.to(device) if device is not None else net

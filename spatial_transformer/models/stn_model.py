import logging
import os

import torch

from . import networks

logger = logging.getLogger(__name__)


def accuracy(pred, labels):
    return (pred.argmax(dim=1) == labels).float().mean().item()


class STNModel:
    """
    Localization network -> spatial transformer -> classifier, trained end to end.

    `opt` is any object carrying the option names of stn_app's Settings
    (IMG_HEIGHT, BATCH_SIZE, LEARNING_RATE, ...).
    """

    def __init__(self, opt, device=None):
        self.opt = opt
        self.device = device if device is not None else torch.device("cpu")
        self.isTrain = getattr(opt, 'isTrain', True)

        self.in_size = (opt.IMG_HEIGHT, opt.IMG_WIDTH)
        self.out_size = (getattr(opt, 'OUTPUT_HEIGHT', None) or opt.IMG_HEIGHT,
                         getattr(opt, 'OUTPUT_WIDTH', None) or opt.IMG_WIDTH)

        self._init_models(opt)
        if self.isTrain:
            self._init_loss(opt)

    def _init_models(self, opt):
        self.model_names = ["L", "C"]

        self.netL = networks.define_L(self.in_size, device=self.device)
        self.netSTN = networks.define_STN(self.out_size, padding_mode=opt.PADDING_MODE,
                                          batch_size=opt.BATCH_SIZE, device=self.device)
        self.netC = networks.define_C(self.out_size, num_classes=opt.NUM_CLASSES, device=self.device)

    def _init_loss(self, opt):
        self.loss_names = ["cls"]
        self.criterion = torch.nn.NLLLoss(reduction='mean').to(self.device)
        self.optimizer = torch.optim.Adam(self.parameters(), lr=opt.LEARNING_RATE)

    def parameters(self):
        for name in self.model_names:
            yield from getattr(self, 'net' + name).parameters()

    def train(self):
        for name in self.model_names:
            getattr(self, 'net' + name).train()

    def eval(self):
        for name in self.model_names:
            getattr(self, 'net' + name).eval()

    def set_input(self, input):
        images, labels = input
        self.images = images.to(self.device)
        self.labels = labels.long().to(self.device)

    def transform_image(self, x):
        thetas = self.netL(x)
        return self.netSTN(x, thetas)

    def forward(self):
        self.thetas = self.netL(self.images)
        self.warped = self.netSTN(self.images, self.thetas)
        self.pred = self.netC(self.warped)
        return self.pred

    def backward(self):
        self.loss_cls = self.criterion(self.pred, self.labels)
        self.loss_cls.backward()

    def optimize_parameters(self):
        self.optimizer.zero_grad()
        self.forward()
        self.backward()
        self.optimizer.step()
        return self.loss_cls.item()

    def test(self):
        """Returns (loss, accuracy) for the current input without touching gradients."""
        with torch.no_grad():
            self.forward()
            self.loss_cls = self.criterion(self.pred, self.labels)
        return self.loss_cls.item(), accuracy(self.pred, self.labels)

    def get_current_losses(self):
        return {name: getattr(self, 'loss_' + name).item() for name in self.loss_names}

    def save_networks(self, path, epoch=None):
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        state = {'net' + name: getattr(self, 'net' + name).state_dict() for name in self.model_names}
        state['epoch'] = epoch
        if self.isTrain:
            state['optimizer'] = self.optimizer.state_dict()
        torch.save(state, path)
        logger.info("Saved checkpoint to %s", path)

    def load_networks(self, path):
        checkpoint = torch.load(path, map_location=self.device)
        for name in self.model_names:
            getattr(self, 'net' + name).load_state_dict(checkpoint['net' + name])
        if self.isTrain and 'optimizer' in checkpoint:
            self.optimizer.load_state_dict(checkpoint['optimizer'])
        logger.info("Loaded checkpoint from %s (epoch %s)", path, checkpoint.get('epoch'))
        return checkpoint.get('epoch')

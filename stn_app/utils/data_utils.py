import os
import logging
import gdown
import numpy as np
import torch
from torch.utils.data import Dataset, DataLoader
from torchvision import datasets, transforms

logger = logging.getLogger(__name__)


def safe_mkdir(path):
    if not os.path.exists(path):
        os.makedirs(path)


def download_from_gdrive(dst_root, fn, gdrive_id):
    safe_mkdir(dst_root)
    output_path = os.path.join(dst_root, fn)

    # Download only if it doesn't exist
    if not os.path.exists(output_path):
        logger.info("Downloading %s...", fn)
        gdown.download(id=gdrive_id, output=output_path, quiet=False)

    logger.info("Downloaded and ready: %s", output_path)
    return output_path


class ClutteredMNIST(Dataset):
    """
    Cluttered MNIST: digits placed at random on a 60x60 canvas together with
    fragments of other digits. Reads the X_/y_ arrays of mnist_cluttered_60.npz.
    """

    def __init__(self, path, split="train", transform=None):
        super(ClutteredMNIST, self).__init__()
        data = np.load(path)
        self.inputs = torch.tensor(data[f"X_{split}"], dtype=torch.float32)
        self.outputs = np.asarray(data[f"y_{split}"])
        self.transform = transform

        side = int(round(np.sqrt(self.inputs[0].numel())))
        if side * side != self.inputs[0].numel():
            raise ValueError(f"Images in {path} are not square: {tuple(self.inputs[0].shape)}")
        self.side = side

    def __len__(self):
        return len(self.outputs)

    def __getitem__(self, idx):
        input_ = self.inputs[idx].reshape(1, self.side, self.side)
        label = np.asarray(self.outputs[idx])
        output_ = int(label.argmax()) if label.size > 1 else int(label.item())
        if self.transform:
            input_ = self.transform(input_)
        return input_, output_


def get_mnist_data(opt):
    transform = transforms.ToTensor()
    train_set = datasets.MNIST(root=opt.DATA_DIR, train=True, download=True, transform=transform)
    test_set = datasets.MNIST(root=opt.DATA_DIR, train=False, download=True, transform=transform)
    return _make_loaders(opt, train_set, test_set)


def get_cluttered_mnist_data(opt):
    path = opt.CLUTTERED_MNIST_PATH
    if not os.path.exists(path):
        download_from_gdrive(os.path.dirname(path) or ".", os.path.basename(path),
                             opt.CLUTTERED_MNIST_GDRIVE_ID)
    train_set = ClutteredMNIST(path, split="train")
    test_set = ClutteredMNIST(path, split="test")
    return _make_loaders(opt, train_set, test_set)


def _make_loaders(opt, train_set, test_set):
    train_loader = DataLoader(train_set, batch_size=opt.BATCH_SIZE, shuffle=True,
                              num_workers=opt.NUM_WORKERS)
    test_loader = DataLoader(test_set, batch_size=opt.BATCH_SIZE, shuffle=False,
                             num_workers=opt.NUM_WORKERS)
    logger.info("Loaded %d training and %d test images", len(train_set), len(test_set))
    return train_loader, test_loader


def get_data_loaders(opt):
    if opt.DATASET == "mnist":
        return get_mnist_data(opt)
    elif opt.DATASET == "cluttered":
        return get_cluttered_mnist_data(opt)
    raise ValueError(f"Unknown dataset: {opt.DATASET!r} (expected 'mnist' or 'cluttered')")


def match_image_size(opt, dataset):
    """Returns opt with IMG_HEIGHT / IMG_WIDTH set to the size of the images in dataset."""
    height, width = dataset[0][0].shape[-2:]
    if (height, width) == (opt.IMG_HEIGHT, opt.IMG_WIDTH):
        return opt
    logger.info("Dataset images are %dx%d, overriding IMG_HEIGHT=%d IMG_WIDTH=%d",
                height, width, opt.IMG_HEIGHT, opt.IMG_WIDTH)
    return opt.model_copy(update={"IMG_HEIGHT": int(height), "IMG_WIDTH": int(width)})

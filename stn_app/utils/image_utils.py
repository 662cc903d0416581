import os
import cv2
import numpy as np
import torch
import imageio.v2 as imageio
from torchvision.utils import make_grid


def tensor2im(image_tensor, nrow=6, imtype=np.uint8):
    """Tile a (B, C, H, W) batch with values in [0, 1] into an (H', W', 3) image."""
    grid = make_grid(image_tensor.detach().cpu().float(), nrow=nrow, padding=2, pad_value=1.0)
    image_numpy = np.transpose(grid.numpy(), (1, 2, 0))
    return (np.clip(image_numpy, 0.0, 1.0) * 255.0).astype(imtype)


def save_image(image_numpy, image_path):
    directory = os.path.dirname(image_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    if image_numpy.ndim == 3 and image_numpy.shape[2] == 1:
        image_numpy = image_numpy.reshape(image_numpy.shape[0], image_numpy.shape[1])
    imageio.imwrite(image_path, image_numpy)


def plot_stn(model, images, ncols=6):
    """Original batch next to its transformed version, as one uint8 image."""
    n_samples = min(ncols ** 2, images.size(0))
    images = images[:n_samples].to(model.device)

    model.eval()
    with torch.no_grad():
        transformed = model.transform_image(images)

    original = tensor2im(images, nrow=ncols)
    warped = tensor2im(transformed, nrow=ncols)
    if warped.shape != original.shape:
        warped = cv2.resize(warped, (original.shape[1], original.shape[0]), interpolation=cv2.INTER_NEAREST)

    separator = np.full((original.shape[0], 8, 3), 255, dtype=np.uint8)
    return np.concatenate([original, separator, warped], axis=1)


def sample_batch(dataset, n_samples, generator=None):
    """Random images (no labels) from a dataset, stacked into a batch."""
    n_samples = min(n_samples, len(dataset))
    indices = torch.randperm(len(dataset), generator=generator)[:n_samples]
    return torch.stack([dataset[int(i)][0] for i in indices])

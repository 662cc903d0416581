import argparse
import logging
import cv2
import numpy as np
import torch
from PIL import Image

from stn_app.config.settings import settings
from stn_app.utils import image_utils, model_utils

logger = logging.getLogger(__name__)


# === Preprocess image ===
def preprocess_image(image: np.ndarray, target_size=(28, 28)):
    """Gray/RGB/RGBA uint8 array -> (1, 1, H, W) float tensor in [0, 1]. target_size is (H, W)."""
    if image.ndim == 3 and image.shape[2] == 4:
        image = cv2.cvtColor(image, cv2.COLOR_RGBA2GRAY)
    elif image.ndim == 3 and image.shape[2] == 3:
        image = cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
    elif image.ndim == 3:
        image = image[:, :, 0]

    height, width = target_size
    image = cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)
    image = image.astype(np.float32) / 255.0
    return torch.from_numpy(image)[None, None]


# === Run inference ===
def run_inference(model, image: np.ndarray):
    """Returns the warped image (uint8, H x W) and the predicted class."""
    x = preprocess_image(image, target_size=model.in_size).to(model.device)

    model.eval()
    with torch.no_grad():
        warped = model.transform_image(x)
        pred = model.netC(warped)

    output = warped.squeeze().cpu().numpy()
    output = np.clip(output * 255.0, 0, 255).astype(np.uint8)
    return output, int(pred.argmax(dim=1).item())


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Warp an image with a trained spatial transformer.')
    parser.add_argument('image', type=str, help='Path of the image to transform.')
    parser.add_argument('--checkpoint', type=str, default=settings.MODEL_CHECKPOINT_PATH,
                        help='Trained checkpoint to load.')
    parser.add_argument('--output', type=str, default='',
                        help='Where to save the warped image. Skipped when empty.')
    return parser.parse_args(argv)


def main(argv=None):
    logging.basicConfig(level=settings.LOG_LEVEL)
    args = parse_args(argv)

    model = model_utils.load_stn_model(args.checkpoint)
    image = np.array(Image.open(args.image))
    warped, label = run_inference(model, image)

    logger.info("Predicted class: %d", label)
    if args.output:
        image_utils.save_image(warped, args.output)
        logger.info("Saved warped image to %s", args.output)
    return label


if __name__ == "__main__":
    main()

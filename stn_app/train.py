import os
import logging
import numpy as np
import torch
from tqdm import tqdm

from spatial_transformer.models import create_model
from stn_app.config.settings import settings
from stn_app.utils import data_utils, image_utils, model_utils

logger = logging.getLogger(__name__)


def setup_logging(opt):
    logging.basicConfig(format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    root = logging.getLogger()
    root.setLevel(opt.LOG_LEVEL)
    if opt.LOG_FILE:
        log_dir = os.path.dirname(opt.LOG_FILE)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)
        root.addHandler(logging.FileHandler(opt.LOG_FILE))


def train_model(model, train_loader, epoch=1, log_interval=100):
    """One pass over train_loader. Returns the per-batch losses."""
    model.train()
    losses = np.zeros(len(train_loader))
    progress = tqdm(train_loader, desc=f"Training epoch {epoch}", leave=False)
    for i, batch in enumerate(progress):
        model.set_input(batch)
        loss = model.optimize_parameters()
        losses[i] = loss
        progress.set_postfix(loss=f"{loss:.4f}")
        if log_interval and i % log_interval == 0:
            logger.debug("Train epoch %d [%d/%d] loss: %.6f", epoch, i, len(train_loader), loss)
    return losses


def test_model(model, test_loader):
    """Returns (mean loss, accuracy in percent) averaged over batches."""
    model.eval()
    total_loss, total_acc = 0.0, 0.0
    for batch in test_loader:
        model.set_input(batch)
        loss, acc = model.test()
        total_loss += loss
        total_acc += acc
    n_batches = len(test_loader)
    return total_loss / n_batches, round(total_acc * 100 / n_batches, 3)


def main(opt=None):
    if opt is None:
        opt = settings
    setup_logging(opt)
    torch.manual_seed(opt.SEED)

    device = model_utils.get_device(opt.DEVICE)
    train_loader, test_loader = data_utils.get_data_loaders(opt)
    opt = data_utils.match_image_size(opt, train_loader.dataset)

    model = create_model(opt, device=device)
    start_epoch = 1
    if opt.RESUME and os.path.exists(opt.MODEL_CHECKPOINT_PATH):
        last_epoch = model.load_networks(opt.MODEL_CHECKPOINT_PATH)
        start_epoch = (last_epoch or 0) + 1

    logger.info("Start training from [Epoch %d]", start_epoch)
    for epoch in range(start_epoch, opt.N_EPOCHS + 1):
        losses = train_model(model, train_loader, epoch=epoch, log_interval=opt.LOG_INTERVAL)
        logger.info("Epoch %d train loss: %.4f", epoch, float(np.mean(losses)))

        # visualize transformations for a random test sample
        images = image_utils.sample_batch(test_loader.dataset, opt.N_VIS_COLS ** 2)
        image_utils.save_image(image_utils.plot_stn(model, images, ncols=opt.N_VIS_COLS),
                               os.path.join(opt.RESULTS_DIR, f"stn_epoch_{epoch:03d}.png"))

        test_loss, test_acc = test_model(model, test_loader)
        logger.info("Test loss: %.4f, test accuracy: %s%%", test_loss, test_acc)

        model.save_networks(opt.MODEL_CHECKPOINT_PATH, epoch=epoch)


if __name__ == "__main__":
    main()

import os
import logging
from torchvision import datasets

from stn_app.config.settings import settings
from stn_app.utils.data_utils import download_from_gdrive, safe_mkdir

logging.basicConfig(level=logging.INFO)

# 1. MNIST (28x28)
safe_mkdir(settings.DATA_DIR)
for train in (True, False):
    datasets.MNIST(root=settings.DATA_DIR, train=train, download=True)
print("✅ MNIST ready in", settings.DATA_DIR)

# 2. Cluttered MNIST (60x60)
download_from_gdrive(os.path.dirname(settings.CLUTTERED_MNIST_PATH) or ".",
                     os.path.basename(settings.CLUTTERED_MNIST_PATH),
                     settings.CLUTTERED_MNIST_GDRIVE_ID)
print("✅ Cluttered MNIST ready at", settings.CLUTTERED_MNIST_PATH)

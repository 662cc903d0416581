from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
import os
from dotenv import load_dotenv

from spatial_transformer import PaddingMode

# Load environment variables from .env
load_dotenv()


class Settings(BaseSettings):
    # Data
    DATASET: str = "mnist"  # "mnist" or "cluttered"
    DATA_DIR: str = "./data"
    CLUTTERED_MNIST_PATH: str = "./data/mnist_cluttered_60.npz"
    CLUTTERED_MNIST_GDRIVE_ID: str = "1txYwNjgY5FxYIUuScE7AKgmeXA4MJB5R"
    NUM_WORKERS: int = 0

    # Image and batch geometry
    BATCH_SIZE: int = 64
    IMG_HEIGHT: int = 28
    IMG_WIDTH: int = 28
    OUTPUT_HEIGHT: Optional[int] = None  # defaults to IMG_HEIGHT
    OUTPUT_WIDTH: Optional[int] = None   # defaults to IMG_WIDTH
    NUM_CLASSES: int = 10
    PADDING_MODE: PaddingMode = PaddingMode.ZEROS

    # Training
    N_EPOCHS: int = 40
    LEARNING_RATE: float = 1e-4
    SEED: int = 233
    LOG_INTERVAL: int = 100

    # Checkpoints
    MODEL_CHECKPOINT_PATH: str = "./checkpoints/latest_net.pth"
    RESUME: bool = False

    # Outputs
    RESULTS_DIR: str = "./results"
    N_VIS_COLS: int = 6
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "./results/train.log"

    # Runtime Device
    DEVICE: str = "cuda" if os.getenv("USE_CUDA") == "1" else "cpu"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()

from pathlib import Path


# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent

# Log directory
LOG_DIR = BASE_DIR / 'logs'

# File-backed entity cache directory
LOCAL_STORE_DIR = BASE_DIR / 'local_store'

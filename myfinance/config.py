# myfinance/config.py
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Where named snapshots are stored
DATA_DIR = Path(os.getenv("MYFINANCE_DATA_DIR", "saves"))

# Snapshot loaded at startup and written by a bare "save"
DEFAULT_SAVE_NAME = os.getenv("MYFINANCE_SAVE_NAME", "default")

# Logging level for main.py
LOG_LEVEL = os.getenv("MYFINANCE_LOG_LEVEL", "WARNING")

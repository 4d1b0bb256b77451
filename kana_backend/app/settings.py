"""Application settings."""
import os
from pathlib import Path

# Database file lives at repo root unless DATABASE_URL says otherwise
REPO_ROOT = Path(__file__).resolve().parent.parent.parent
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{REPO_ROOT / 'kana_learning.db'}")

# Key under which the learning snapshot is stored in the key-value table
LEARNING_STORAGE_KEY = os.getenv("LEARNING_STORAGE_KEY", "characterLearningData")

# A pointer path that never leaves this radius (device pixels) is a tap, not a stroke
MOVE_THRESHOLD_PX = float(os.getenv("MOVE_THRESHOLD_PX", "5"))

# Canvas edge length the reference drawing surface uses
DEFAULT_CANVAS_SIZE = int(os.getenv("DEFAULT_CANVAS_SIZE", "450"))

from __future__ import annotations
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()
DB_PATH = Path(os.getenv("LEITNER_DB_PATH", "leitner.db"))
# rapidfuzz ratio (0-100) a typed answer needs to count as correct
ANSWER_MATCH_THRESHOLD = float(os.getenv("ANSWER_MATCH_THRESHOLD", "80"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

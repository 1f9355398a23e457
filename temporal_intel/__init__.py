"""Temporal Intelligence: commitment tracking with a daily interrupt budget

Philosophy:
    A commitment the user forgets is worse than one they were reminded of,
    but a reminder they didn't need is an interruption they pay for. The
    engine surfaces the few things that truly need attention today and keeps
    everything else in a quiet queue.

Pipeline:
    classify -> extract -> validate -> score -> budget-gate -> dispatch -> learn

Components:
    extraction/: source classifier, commitment extractor, validator
    scoring/: multi-factor priority score
    budget/: per-user, per-day interrupt budget and quiet hours
    digest/: morning digest and evening review
    inference/: preparatory dependency chains
    learning/: notification outcome log and preference adjustment
    preferences/: per-user temporal preferences

Storage: a key-value store (see store.py), in memory by default or
data/temporal.db when the sqlite backend is configured.
"""

from pathlib import Path


# Path constants
PROJECT_ROOT = Path(__file__).parent.parent
ARGS_DIR = PROJECT_ROOT / "args"
DATA_DIR = PROJECT_ROOT / "data"
CONFIG_PATH = ARGS_DIR / "temporal.yaml"
DB_PATH = DATA_DIR / "temporal.db"

__version__ = "0.3.0"

__all__ = [
    "PROJECT_ROOT",
    "ARGS_DIR",
    "DATA_DIR",
    "CONFIG_PATH",
    "DB_PATH",
    "__version__",
]

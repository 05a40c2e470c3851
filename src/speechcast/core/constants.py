"""Constants for SpeechCast."""

import sys
from pathlib import Path

# Project root, handles both normal and PyInstaller frozen mode
if getattr(sys, 'frozen', False):
    PROJECT_ROOT = Path(sys.executable).parent
else:
    # core/ -> speechcast/ -> src/ -> project root
    PROJECT_ROOT = Path(__file__).parent.parent.parent.parent

# Default paths
CONFIG_DIR = PROJECT_ROOT / "config"
LOGS_DIR = PROJECT_ROOT / "logs"

# pyttsx3 defaults
DEFAULT_RATE = 175
DEFAULT_VOLUME = 0.9

# Seconds to wait for the synthesis engine thread to come up
ENGINE_INIT_TIMEOUT = 10

# Seconds a caller waits for the speaker worker to answer
CALL_TIMEOUT = 10

# Seconds to wait for a terminated child before killing it
TERMINATE_TIMEOUT = 3

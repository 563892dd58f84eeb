"""
config.py

This module centralizes all configuration settings for the Abacus bot.
It handles path definitions, loading environment variables (like the bot token),
and the limits handed to the expression evaluator.

Loading is import-safe: a missing `info.env` only leaves the values unset.
`main.py` calls `check_and_create_env_file()` and validates the token before
the bot starts.
"""
import os
import sys
import logging
from dotenv import load_dotenv

# --- Pathing ---

def get_application_path() -> str:
    """The directory holding this file; `info.env` and the log file live next to it."""
    return os.path.dirname(os.path.abspath(__file__))

# --- Core Paths ---
APP_PATH = get_application_path()
ENV_PATH = os.path.join(APP_PATH, 'info.env')
LOG_PATH = os.path.join(APP_PATH, 'abacus.log')
COGS_PATH = os.path.join(APP_PATH, 'cogs')

# --- Bot Configuration ---

def check_and_create_env_file():
    """
    Checks for the existence of the `info.env` file. If it doesn't exist,
    it creates a template file and exits the application with instructions
    for the user. This ensures the bot isn't run without a configuration file.
    """
    if not os.path.exists(ENV_PATH):
        logging.warning(f"'{os.path.basename(ENV_PATH)}' not found. Creating a new one.")
        with open(ENV_PATH, 'w') as f:
            f.write("# Discord Token for bot start up.\n")
            f.write("DISCORD_TOKEN=\n\n")
            f.write("# Bot Prefixes, ensure they're seperated with commas.\n")
            f.write("BOT_PREFIX=\n\n")
            f.write("# (Optional) Owner ID for owner specific commands.\n")
            f.write("OWNER_ID=\n\n")
            f.write("# (Optional) Channel ID for startup/shutdown messages.\n")
            f.write("SYSTEM_CHANNEL_ID=\n\n")
            f.write("# (Optional) Enable developer mode (bot only responds to OWNER_ID). Can be True or False.\n")
            f.write("DEV_MODE=False\n\n")
            f.write("# (Optional) Calculator limits.\n")
            f.write(f"MATH_MAX_ROLLS={DEFAULT_MATH_MAX_ROLLS}\n")
            f.write(f"MATH_MAX_ROLLS_VERBOSE_DICE={DEFAULT_MATH_MAX_ROLLS_VERBOSE_DICE}\n")
            f.write(f"MATH_MAX_ROLLS_VERBOSE_CHARS={DEFAULT_MATH_MAX_ROLLS_VERBOSE_CHARS}\n")
            f.write(f"MATH_MAX_TRACE_STEPS={DEFAULT_MATH_MAX_TRACE_STEPS}\n")
        # This message is critical for the user to see on the first run.
        print(f"'{os.path.basename(ENV_PATH)}' was not found.")
        print(f"A new one has been created at: {ENV_PATH}")
        print("\nPlease open this file and add your bot's DISCORD_TOKEN and BOT_PREFIX.")
        print("The OWNER_ID is optional but recommended.")
        sys.exit("Exiting: Bot token and prefix not configured.")

def parse_prefixes(raw: str | None) -> list[str]:
    """
    Splits the comma-separated prefix setting. Longer prefixes come first so
    '.abacus' is matched before '.a', and each gets a trailing space as delimiter.
    """
    if not raw:
        return []
    return sorted([p.strip() + ' ' for p in raw.split(',') if p.strip()], key=len, reverse=True)

def parse_limit(name: str, default: int) -> int:
    """Reads a non-negative integer setting, falling back to `default` when unusable."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        logging.warning(f"{name}={raw!r} is not an integer. Using the default of {default}.")
        return default
    if value < 0:
        logging.warning(f"{name}={value} is negative. Using the default of {default}.")
        return default
    return value

# Load the environment variables from the .env file, if there is one.
if os.path.exists(ENV_PATH):
    load_dotenv(dotenv_path=ENV_PATH)

# --- Environment Variables ---
TOKEN = os.getenv('DISCORD_TOKEN')
BOT_PREFIX_RAW = os.getenv('BOT_PREFIX')
BOT_PREFIX = parse_prefixes(BOT_PREFIX_RAW)

raw_owner_id = os.getenv('OWNER_ID')
raw_system_channel_id = os.getenv('SYSTEM_CHANNEL_ID')
OWNER_ID = int(raw_owner_id) if raw_owner_id and raw_owner_id.isdigit() else None
SYSTEM_CHANNEL_ID = int(raw_system_channel_id) if raw_system_channel_id and raw_system_channel_id.isdigit() else None

raw_dev_mode = os.getenv('DEV_MODE', 'False')
DEV_MODE = raw_dev_mode.lower() in ('true', '1', 't')

# --- Calculator Limits ---
DEFAULT_MATH_MAX_ROLLS = 999999
DEFAULT_MATH_MAX_ROLLS_VERBOSE_DICE = 8
DEFAULT_MATH_MAX_ROLLS_VERBOSE_CHARS = 80
DEFAULT_MATH_MAX_TRACE_STEPS = 250

MATH_MAX_ROLLS = parse_limit('MATH_MAX_ROLLS', DEFAULT_MATH_MAX_ROLLS)
MATH_MAX_ROLLS_VERBOSE_DICE = parse_limit('MATH_MAX_ROLLS_VERBOSE_DICE', DEFAULT_MATH_MAX_ROLLS_VERBOSE_DICE)
MATH_MAX_ROLLS_VERBOSE_CHARS = parse_limit('MATH_MAX_ROLLS_VERBOSE_CHARS', DEFAULT_MATH_MAX_ROLLS_VERBOSE_CHARS)
MATH_MAX_TRACE_STEPS = parse_limit('MATH_MAX_TRACE_STEPS', DEFAULT_MATH_MAX_TRACE_STEPS)

# --- Logging Configuration ---
# These are default values that can be used by the logging setup function.
LOG_LEVEL = logging.INFO
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(funcName)s:%(lineno)d] - %(message)s'
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT = 2

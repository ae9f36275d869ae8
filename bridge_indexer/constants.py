"""
Bridge Indexer Constants

Process-wide constants. The ``LOG_*`` settings may be overridden from a
``.env`` file in the working directory; each one remembers its built-in
default, reachable through ``.default()``.
"""
import re
from dotenv import dotenv_values

_env = dotenv_values(".env")


# ==================================================================================
# CONFIGURATION WRAPPERS
# ==================================================================================
class ConfigString(str):
    """str carrying the default it replaced."""

    def __new__(cls, value, default):
        obj = super().__new__(cls, value)
        obj._default = default
        return obj

    def default(self):
        return self._default


class ConfigBool(int):
    """bool-like int carrying the default it replaced."""

    def __new__(cls, value, default):
        obj = super().__new__(cls, bool(value))
        obj._default = default
        return obj

    def default(self):
        return self._default

    def __eq__(self, other):
        return bool(self) == other

    __hash__ = int.__hash__

    def __repr__(self):
        return repr(bool(self))

    __str__ = __repr__


def _env_string(key: str, default: str) -> ConfigString:
    raw = _env.get(key)
    return ConfigString(default if raw is None else raw, default)


def _env_bool(key: str, default: bool) -> ConfigBool:
    raw = (_env.get(key) or "").strip().casefold()
    if raw in ("true", "1", "yes"):
        return ConfigBool(True, default)
    if raw in ("false", "0", "no"):
        return ConfigBool(False, default)
    return ConfigBool(default, default)


# ==================================================================================
# LOGGING
# ==================================================================================
LOG_LEVEL = _env_string("LOG_LEVEL", "INFO")
LOG_FORMAT = _env_string("LOG_FORMAT", "%(asctime)s - %(levelname)s - %(name)s - %(message)s")
LOG_DATE_FORMAT = _env_string("LOG_DATE_FORMAT", "%Y-%m-%dT%H:%M:%S")
LOG_CONSOLE_HIGHLIGHTING = _env_bool("LOG_CONSOLE_HIGHLIGHTING", True)
LOG_FILE_OUTPUT = _env_bool("LOG_FILE_OUTPUT", False)
LOG_FILE_PATH = _env_string("LOG_FILE_PATH", "logs/bridge_indexer.log")

LOG_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5


# ==================================================================================
# CHAIN DATA FORMATS
# ==================================================================================
# Block and transaction hashes accepted by the normalizer, with or without 0x
VALID_HASH_PATTERN = re.compile(r'^(0x)?[0-9a-fA-F]{64}$')


# ==================================================================================
# PAGINATION
# ==================================================================================
DEFAULT_PAGE_LIMIT = 10
MAX_PAGE_LIMIT = 1000


# ==================================================================================
# STORAGE DEFAULTS
# ==================================================================================
DEFAULT_POOL_MIN_SIZE = 1
DEFAULT_POOL_MAX_SIZE = 10
DEFAULT_COMMAND_TIMEOUT = 30.0  # seconds
DEFAULT_SQLITE_BUSY_TIMEOUT = 5000  # milliseconds

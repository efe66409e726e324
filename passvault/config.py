"""
Configuration constants for the PassVault application.
"""

import os

from . import __version__

# Application Metadata
APP_VERSION = __version__  # Use: Current version of the application. Type: str. Range: Semantic versioning string (e.g., "1.0.0")
APP_NAME = "PassVault"  # Use: Name of the application, used in CLI help and log messages. Type: str. Range: Any valid string.
APP_DESCRIPTION = "Local encrypted password store with browser CSV import/export."  # Use: Description shown by the command-line help. Type: str. Range: Any valid string.

# Security Settings
KEY_SIZE = 16  # Use: Size of the static encryption key in bytes. Corresponds to AES-128. Type: int. Range: Fixed at 16.
IV_SIZE = 16  # Use: Size of the CBC initialization vector in bytes, drawn fresh for each encryption. Type: int. Range: Fixed at 16 (one AES block).
BLOCK_SIZE_BITS = 128  # Use: Block size in bits passed to the PKCS#7 padder. Type: int. Range: Fixed at 128 for AES.
# Known weakness: this key is compiled into the application. Override it with
# KEY_ENV_VAR or the OS keyring for any real use.
DEFAULT_SECRET_KEY = b"MySecretKey12345"  # Use: Built-in AES-128 key used when no other key provider is configured. Type: bytes. Range: Exactly KEY_SIZE bytes.
KEY_ENV_VAR = "PASSVAULT_SECRET_KEY"  # Use: Environment variable holding a 16-character key for EnvironmentKeyProvider. Type: str. Range: Any valid environment variable name.
KEYRING_SERVICE = "passvault"  # Use: Service name under which KeyringKeyProvider looks up the key. Type: str. Range: Any non-empty string.
KEYRING_USERNAME = "secret-key"  # Use: Account name under which KeyringKeyProvider looks up the key. Type: str. Range: Any non-empty string.

# Storage Settings
TABLE_NAME = "password_entries"  # Use: Name of the SQLite table holding entries. Type: str. Range: Valid SQL identifier.
SQLITE_TIMEOUT_SECONDS = 5.0  # Use: How long a connection waits on a locked database before failing. Type: float. Range: Positive number; small values keep failures fast.
EDITABLE_FIELDS = ("name", "url", "username", "password", "notes")  # Use: Entry fields that update_entry accepts as keyword changes. Type: tuple[str]. Range: Subset of PasswordEntry fields.

# CSV Import/Export Settings
CSV_EXPORT_HEADER = "name,url,username,password,note"  # Use: Header line written at the top of every export, matching Chrome/Edge. Type: str. Range: Fixed.
CSV_MIN_FIELDS = 4  # Use: Minimum number of fields a data row needs (name, url, username, password). Type: int. Range: Fixed at 4.
CSV_NOTES_INDEX = 4  # Use: Zero-based column index of the optional notes field. Type: int. Range: Fixed at 4.
CSV_MAX_RECORD_LINES = 100  # Use: Most physical lines one quoted field may span before its record is read line by line instead. Type: int. Range: 2 or more.
CSV_ENCODING = "utf-8"  # Use: Encoding used when writing exports. Type: str. Range: Any codec name; browsers expect utf-8.
CSV_IMPORT_ENCODING = "utf-8-sig"  # Use: Encoding used when reading imports; tolerates a leading BOM. Type: str. Range: Any codec name.
CSV_IMPORT_ERRORS = "surrogateescape"  # Use: Decode error handler for imports; undecodable bytes survive to the row check and skip only their row. Type: str. Range: "surrogateescape".

# File and Directory Names
CONFIG_DIR_NAME = ".passvault"  # Use: Name of the hidden directory within the user's home directory where PassVault keeps its data. Type: str. Range: Any valid directory name.
DEFAULT_DB_FILE = "passwords.db"  # Use: Default filename for the SQLite entry database. Type: str. Range: Any valid filename.
LOG_DIR_NAME = "logs"  # Use: Subdirectory of CONFIG_DIR_NAME holding the audit log. Type: str. Range: Any valid directory name.
AUDIT_LOG_FILE = "audit.log"  # Use: Filename for the security audit log. Type: str. Range: Any valid filename.
DB_PATH_ENV_VAR = "PASSVAULT_DB"  # Use: Environment variable that overrides the default database path. Type: str. Range: Any valid environment variable name.

# Logging
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(name)s - %(message)s'  # Use: Format passed to logging.basicConfig by the CLI. Type: str. Range: Any logging format string.


def get_config_dir() -> str:
    """Return the per-user configuration directory."""
    return os.path.join(os.path.expanduser("~"), CONFIG_DIR_NAME)


def get_default_db_path() -> str:
    """Return the database path, honouring the DB_PATH_ENV_VAR override."""
    override = os.environ.get(DB_PATH_ENV_VAR)
    if override:
        return override
    return os.path.join(get_config_dir(), DEFAULT_DB_FILE)

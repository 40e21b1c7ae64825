"""
Configuration constants for the Vaultify credential vault engine.
"""

import os

# Application Metadata
APP_VERSION = "0.4.0"  # Use: Current version of the engine. Type: str. Range: Semantic versioning string (e.g., "1.0.0")
APP_NAME = "Vaultify"  # Use: Name of the application, used in log and CLI output. Type: str. Range: Any valid string.
APP_DISCLAIMER = """  # Use: Notice printed by the command line entry point. Type: str (multi-line). Range: Any valid string.
Vaultify stores credentials on this device only. Session tokens and the
master password envelope are reversible encodings, not security boundaries.
"""

# Security Settings
ENCRYPTION_PASSPHRASE = os.environ.get("VAULTIFY_ENCRYPTION_KEY", "default-secret-key")  # Use: Passphrase the at-rest encryption key is derived from. Type: str. Range: Any non-empty string; override per deployment.
KEY_DERIVATION_SALT = b"vaultify-at-rest-key-v1"  # Use: Fixed salt for deriving the at-rest key from ENCRYPTION_PASSPHRASE. Type: bytes. Range: At least 16 bytes.
KEY_SIZE = 32  # Use: Size of the encryption key in bytes. Corresponds to AES-256. Type: int. Range: 16 (AES-128), 24 (AES-192), or 32 (AES-256) bytes.
NONCE_SIZE = 12  # Use: Size of the Nonce (Number used once) in bytes for AES-GCM. Type: int. Range: 12 bytes (96 bits) is the recommended size for GCM.
TAG_SIZE = 16  # Use: Size of the authentication tag in bytes for AES-GCM. Type: int. Range: 16 bytes (128 bits) is the recommended size for GCM.
ARGON2_TIME_COST = 2  # Use: Argon2id time cost parameter. Controls the number of iterations. Type: int. Range: Typically 1 to 10. Higher values increase security but also computation time.
ARGON2_MEMORY_COST = 65536  # Use: Argon2id memory cost parameter. Controls the memory usage in KiB. Type: int. Range: Recommended to be at least 65536 (64 MB). Higher values increase security but also memory usage.
ARGON2_PARALLELISM = 4  # Use: Argon2id parallelism parameter. Controls the number of threads/lanes. Type: int. Range: Typically 1 to 8, often set to the number of CPU cores.
CIPHERTEXT_FORMAT_VERSION = "v1"  # Use: Prefix written in front of every stored ciphertext so the algorithm or key can be rotated later. Type: str. Range: Short token without ':'.
SESSION_TOKEN_TTL_MS = 3600000  # Use: Lifetime of a session token in milliseconds. Tokens are not renewed. Type: int. Range: Positive integer (3,600,000 = 1 hour).
MASTER_PASSWORD_MIN_LENGTH = 12  # Use: Minimum length accepted when a master password is first set. Type: int. Range: Typically 8 to 16, but higher is better for master passwords.

# Vault Settings
HISTORY_LIMIT = 10  # Use: Maximum number of previous versions kept per credential; older versions are evicted. Type: int. Range: Positive integer.
DEFAULT_CATEGORY = "General"  # Use: Category assigned to credentials added without one. Type: str. Range: Any non-empty string.
STORAGE_SCHEMA_VERSION = 1  # Use: Version of the persisted vault blob. Bump when the record layout changes. Type: int. Range: Positive integer.
STORAGE_CIPHER_NAME = "aes-256-gcm"  # Use: Cipher identifier recorded in the persisted vault blob. Type: str. Range: Any string.

# Security Analysis Settings
WEAK_SCORE_THRESHOLD = 60  # Use: Credentials scoring below this strength are reported as weak. Type: int. Range: 0 to 100.
STALE_AFTER_MONTHS = 6  # Use: Credentials whose current version is older than this many calendar months are reported as stale. Type: int. Range: Positive integer.
WEAK_WEIGHT = 0.4  # Use: Weight of the weak percentage in the overall score penalty. Type: float. Range: 0.0 to 1.0.
REUSED_WEIGHT = 0.4  # Use: Weight of the reused percentage in the overall score penalty. Type: float. Range: 0.0 to 1.0.
STALE_WEIGHT = 0.2  # Use: Weight of the stale percentage in the overall score penalty. Type: float. Range: 0.0 to 1.0.
RATING_EXCELLENT_MIN = 90  # Use: Lowest overall score rated "excellent". Type: int. Range: 0 to 100.
RATING_GOOD_MIN = 70  # Use: Lowest overall score rated "good"; anything lower needs attention. Type: int. Range: 0 to 100.

# Activity Log Settings
ACTIVITY_LOG_LIMIT = 10  # Use: Maximum number of recent activity entries kept per identity. Type: int. Range: Positive integer.

# Password Policy Defaults
POLICY_MIN_LENGTH = 12  # Use: Default minimum length required by the password policy. Type: int. Range: Positive integer.
POLICY_REQUIRE_UPPERCASE = True  # Use: Whether the default policy requires an uppercase letter. Type: bool. Range: True or False.
POLICY_REQUIRE_LOWERCASE = True  # Use: Whether the default policy requires a lowercase letter. Type: bool. Range: True or False.
POLICY_REQUIRE_NUMBERS = True  # Use: Whether the default policy requires a digit. Type: bool. Range: True or False.
POLICY_REQUIRE_SYMBOLS = True  # Use: Whether the default policy requires a special character. Type: bool. Range: True or False.
STRENGTH_REPEAT_CHECK_LENGTH = 256  # Use: Only this many leading characters are searched for the repeated-symbol penalty; the pattern is quadratic. Type: int. Range: Positive integer.

# Password Generator Settings
PASSWORD_GENERATOR_DEFAULT_LENGTH = 16  # Use: Default length for generated passwords. Type: int. Range: PASSWORD_GENERATOR_MIN_LENGTH to PASSWORD_GENERATOR_MAX_LENGTH.
PASSWORD_GENERATOR_MIN_LENGTH = 8  # Use: Minimum allowed length for generated passwords. Type: int. Range: Positive integer.
PASSWORD_GENERATOR_MAX_LENGTH = 128  # Use: Maximum allowed length for generated passwords. Type: int. Range: Positive integer.
PASSWORD_GENERATOR_AMBIGUOUS_CHARS = "0O1lI"  # Use: Characters considered ambiguous and can be excluded from generated passwords. Type: str. Range: Any string of characters.

# File and Directory Names
DATA_DIR = os.environ.get("VAULTIFY_DATA_DIR", os.path.join(os.path.expanduser("~"), ".vaultify"))  # Use: Directory holding the key-value files (vaults, envelopes, activity). Type: str. Range: Any writable directory path.
KV_FILE_SUFFIX = ".json"  # Use: Extension of each key-value file in DATA_DIR. Type: str. Range: Any valid filename suffix.

# Key-value Keys
KEY_AUTH_TOKEN = "authToken"  # Use: Key under which the current session token is kept. Type: str. Range: Any string.
KEY_CURRENT_USER = "currentUser"  # Use: Key under which the logged-in identity is kept. Type: str. Range: Any string.
KEY_PASSWORDS_SUFFIX = "passwords"  # Use: Suffix of the per-identity vault blob key ("<identity>_passwords"). Type: str. Range: Any string.
KEY_MASTER_PASSWORD_SUFFIX = "masterPassword"  # Use: Suffix of the per-identity master password envelope key. Type: str. Range: Any string.
KEY_ACTIVITY_SUFFIX = "recentActivities"  # Use: Suffix of the per-identity activity log key. Type: str. Range: Any string.
KEY_LAST_CHECK_SUFFIX = "lastSecurityResult"  # Use: Suffix of the per-identity cached security report key. Type: str. Range: Any string.
KEY_NOTES_SUFFIX = "encryptedNotes"  # Use: Suffix of the per-identity encrypted notes key. Type: str. Range: Any string.
KEY_PASSWORD_POLICY = "passwordPolicy"  # Use: Key under which the password policy is kept. Type: str. Range: Any string.


def identity_key(identity: str, suffix: str) -> str:
    """Build the key-value key scoping ``suffix`` to one identity."""
    return f"{identity}_{suffix}"

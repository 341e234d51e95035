import os
import shlex

from dotenv import find_dotenv, load_dotenv

from statement_categorizer.logger import get_logger

logger = get_logger(__name__)


CONFIG_FILENAME = "config.yaml"

CONFIG_KEYS = (
    "LOG_LEVEL",
    "LOG_DIR",
    "DATA_DIR",
    "MAX_UPLOAD_BYTES",
    "CLUSTER_SIGNATURE_TOKENS",
    "CLUSTER_MIN_TOKEN_LENGTH",
    "CLUSTER_MIN_CITY_LENGTH",
    "CLUSTER_NOISE_TOKENS",
)

_config_path: str | None = None
_file_values: dict[str, str] = {}
_external_keys: frozenset[str] = frozenset()


def _find_dotenv_file() -> str | None:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir and os.path.exists(os.path.join(config_dir, ".env")):
        return os.path.join(config_dir, ".env")
    return find_dotenv(usecwd=True) or None


def _find_config_file() -> str:
    config_dir = os.getenv("CONFIG_DIR")
    if config_dir:
        return os.path.join(config_dir, CONFIG_FILENAME)
    nested = os.path.join(os.getcwd(), "config", CONFIG_FILENAME)
    if os.path.exists(nested):
        return nested
    return os.path.join(os.getcwd(), CONFIG_FILENAME)


def parse_config_value(raw: str) -> str:
    """Unquote a config value and drop a trailing ``# comment``.

    Quoting follows shell rules: inside double quotes ``\\"`` and ``\\\\`` are
    escapes, and ``#`` only starts a comment outside quotes.
    """
    lexer = shlex.shlex(raw, posix=True)
    lexer.whitespace_split = True
    lexer.commenters = "#"
    try:
        return " ".join(lexer)
    except ValueError:
        logger.warning("[CONFIG] Unbalanced quotes in value %r, using it as written.", raw)
        return raw.strip()


def read_config_file(path: str | None) -> dict[str, str]:
    """Read a flat ``KEY: value`` file. Comments and keys without a value are skipped."""
    if not path or not os.path.exists(path):
        return {}

    values: dict[str, str] = {}
    with open(path, encoding="utf-8") as handle:
        for line in handle:
            key, sep, raw_value = line.strip().partition(":")
            key = key.strip()
            if not sep or not key or key.startswith("#"):
                continue
            value = parse_config_value(raw_value)
            if value:
                values[key] = value
    return values


def load_environment() -> None:
    """Load ``.env`` and ``config.yaml``; real environment variables always win."""
    global _config_path, _file_values, _external_keys

    dotenv_file = _find_dotenv_file()
    if dotenv_file:
        load_dotenv(dotenv_path=dotenv_file, override=False)

    _external_keys = frozenset(os.environ)
    _config_path = _find_config_file()
    _file_values = read_config_file(_config_path)

    for key in CONFIG_KEYS:
        if key in _file_values:
            os.environ.setdefault(key, _file_values[key])


def get_config_path() -> str | None:
    return _config_path


def is_env_override(name: str) -> bool:
    return name in _external_keys


def value_source(name: str) -> str:
    if is_env_override(name):
        return "environment"
    if name in os.environ:
        return "config file"
    return "default"


def ensure_dirs(*paths: str | None) -> None:
    for path in paths:
        if path and path not in {".", "./"}:
            os.makedirs(path, exist_ok=True)


def get_env_int(
    name: str,
    default: int,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("[ENV] %s='%s' is not a whole number, using %s.", name, raw, default)
        return default
    if (min_value is not None and value < min_value) or (max_value is not None and value > max_value):
        logger.warning("[ENV] %s=%s is out of range, using %s.", name, value, default)
        return default
    return value


def parse_list(raw: str | None) -> list[str]:
    """Split a comma-separated value, dropping blanks and repeats."""
    items = (part.strip() for part in (raw or "").split(","))
    return list(dict.fromkeys(item for item in items if item))


def get_env_list(name: str, default: tuple[str, ...] = ()) -> list[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return parse_list(raw)


def log_environment() -> None:
    logger.info("[ENV] Config file: %s", _config_path or "<none>")
    for key in CONFIG_KEYS:
        raw_value = os.getenv(key)
        if raw_value is None:
            logger.info("[ENV] %s=<unset>", key)
            continue
        shown = raw_value.replace("\r", "\\r").replace("\n", "\\n")
        logger.info("[ENV] %s=%s (%s)", key, shown, value_source(key))


DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024


load_environment()

DATA_DIR = os.getenv("DATA_DIR") or "."
LOG_DIR = os.getenv("LOG_DIR")
CONFIG_DIR = os.getenv("CONFIG_DIR")

ensure_dirs(DATA_DIR, LOG_DIR, CONFIG_DIR)

MAX_UPLOAD_BYTES = get_env_int("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES, min_value=1)

"""Configuration file loading.

The file is INI-like. Keys before the first ``[section]`` header belong to
the main section and also hold the global settings; every further section
defines another sync job which inherits the main section's policy keys
(never its ``*_URL`` keys) and must set its own ``COMMENT``::

    GRAVITY_DB = /etc/pihole/gravity.db
    BLACKLIST_URL = https://example.com/blacklist.txt
    COMMENT = Managed by pihole-listsync

    [kids]
    COMMENT = Managed by pihole-listsync (kids)
    GROUP_ID = -2
    ADLISTS_URL = https://example.com/kids-adlists.txt
"""

import configparser
import hashlib
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pihole_listsync.exceptions import ConfigError
from pihole_listsync.fetcher import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from pihole_listsync.models import DEFAULT_COMMENT, KIND_ORDER, MigrationMode, Section
from pihole_listsync.store import DEFAULT_GRAVITY_DB

logger = logging.getLogger(__name__)

# ============================================================================
# CONSTANTS
# ============================================================================

DEFAULT_CONFIG_FILE = "/etc/pihole-listsync.conf"
DEFAULT_LOCK_FILE = "/var/lock/pihole-listsync.lock"
MAIN_SECTION = "main"
MIN_COMMENT_LENGTH = 3

_TRUE = ('1', 'true', 'yes', 'on')
_FALSE = ('0', 'false', 'no', 'off', 'none', '')

SECTION_DEFAULTS = {
    'COMMENT': DEFAULT_COMMENT,
    'GROUP_ID': '0',
    'GROUP_EXCLUSIVE': 'false',
    'PERSISTENT_GROUP': 'false',
    'REQUIRE_COMMENT': 'true',
    'MIGRATION_MODE': '0',
    'IGNORE_DOWNLOAD_FAILURE': 'false',
}

GLOBAL_KEYS = (
    'GRAVITY_DB', 'LOCK_FILE', 'LOG_FILE', 'TIMEOUT', 'USER_AGENT',
    'UPDATE_GRAVITY', 'VACUUM_DATABASE', 'VERBOSE', 'DEBUG',
)


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class Config:
    """Configuration for a synchronization run."""
    config_file: str = DEFAULT_CONFIG_FILE
    gravity_db: str = DEFAULT_GRAVITY_DB
    lock_file: str = DEFAULT_LOCK_FILE
    log_file: str = ""
    timeout: int = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    update_gravity: bool = True
    vacuum_database: bool = False
    reload_lists: bool = True
    dry_run: bool = False
    progress: bool = False
    quiet: bool = False
    verbose: bool = False
    debug: bool = False
    sections: List[Section] = field(default_factory=list)

    def __post_init__(self):
        if self.timeout <= 0:
            self.timeout = DEFAULT_TIMEOUT


# ============================================================================
# PARSING
# ============================================================================

def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def parse_bool(key: str, value: str) -> bool:
    text = _unquote(str(value)).lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"Variable {key} must be a boolean, got '{value}'")


def parse_int(key: str, value: str) -> int:
    try:
        return int(_unquote(str(value)))
    except ValueError:
        raise ConfigError(f"Variable {key} must be a number, got '{value}'") from None


def lock_file_for(config_file: str) -> str:
    """Lock file path; non-default config files get their own lock."""
    if os.path.abspath(config_file) == DEFAULT_CONFIG_FILE:
        return DEFAULT_LOCK_FILE
    digest = hashlib.md5(os.path.abspath(config_file).encode('utf-8')).hexdigest()
    root, ext = os.path.splitext(DEFAULT_LOCK_FILE)
    return f"{root}-{digest}{ext}"


def build_section(name: str, values: Dict[str, str]) -> Section:
    """Create and validate a :class:`Section` from raw key/value pairs."""
    comment = _unquote(values.get('COMMENT', DEFAULT_COMMENT)).strip()
    if len(comment) < MIN_COMMENT_LENGTH:
        raise ConfigError(f"[{name}] Variable COMMENT must be a string at least "
                          f"{MIN_COMMENT_LENGTH} characters long!")

    try:
        migration_mode = MigrationMode.parse(_unquote(values.get('MIGRATION_MODE', '0')))
    except (KeyError, ValueError):
        raise ConfigError(f"[{name}] Variable MIGRATION_MODE must be 0, 1 or 2") from None

    sources = {}
    for kind in KIND_ORDER:
        raw = _unquote(values.get(kind.config_key, ''))
        urls = raw.split()
        if urls:
            sources[kind] = urls

    return Section(
        name=name,
        comment=comment,
        group_id=parse_int('GROUP_ID', values.get('GROUP_ID', '0')),
        group_exclusive=parse_bool('GROUP_EXCLUSIVE', values.get('GROUP_EXCLUSIVE', 'false')),
        persistent_group=parse_bool('PERSISTENT_GROUP', values.get('PERSISTENT_GROUP', 'false')),
        require_comment=parse_bool('REQUIRE_COMMENT', values.get('REQUIRE_COMMENT', 'true')),
        migration_mode=migration_mode,
        ignore_download_failure=parse_bool('IGNORE_DOWNLOAD_FAILURE',
                                           values.get('IGNORE_DOWNLOAD_FAILURE', 'false')),
        sources=sources,
    )


def _read_ini(text: str, source: str) -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        interpolation=None,
        default_section="__defaults__",
        strict=False,
        inline_comment_prefixes=(';',),
    )
    parser.optionxform = str.upper
    try:
        parser.read_string(f"[{MAIN_SECTION}]\n{text}", source=source)
    except configparser.Error as e:
        raise ConfigError(f"Failed to parse configuration file {source}: {e}") from e
    return parser


def parse_config(text: str, config: Optional[Config] = None, source: str = "<config>") -> Config:
    """Apply configuration ``text`` on top of ``config`` (or defaults)."""
    config = config or Config()
    parser = _read_ini(text, source)
    main = {key: value for key, value in parser.items(MAIN_SECTION)}

    if 'GRAVITY_DB' in main:
        config.gravity_db = _unquote(main['GRAVITY_DB'])
    if 'LOCK_FILE' in main:
        config.lock_file = _unquote(main['LOCK_FILE'])
    if 'LOG_FILE' in main:
        config.log_file = _unquote(main['LOG_FILE'])
    if 'USER_AGENT' in main:
        config.user_agent = _unquote(main['USER_AGENT'])
    if 'TIMEOUT' in main:
        config.timeout = parse_int('TIMEOUT', main['TIMEOUT'])
    for key in ('UPDATE_GRAVITY', 'VACUUM_DATABASE', 'VERBOSE', 'DEBUG'):
        if key in main:
            setattr(config, key.lower(), parse_bool(key, main[key]))
    config.__post_init__()

    inherited = dict(SECTION_DEFAULTS)
    inherited.update({key: value for key, value in main.items()
                      if key in SECTION_DEFAULTS})

    sections = [build_section(MAIN_SECTION, {**inherited, **main})]
    for name in parser.sections():
        if name == MAIN_SECTION:
            continue
        values = {key: value for key, value in parser.items(name)}
        if 'COMMENT' not in values:
            raise ConfigError(f"[{name}] Variable COMMENT is required in additional sections")
        unknown = [key for key in values if key in GLOBAL_KEYS]
        if unknown:
            logger.warning(f"[{name}] Global variables are ignored in sections: {', '.join(unknown)}")
        sections.append(build_section(name, {**inherited, **values}))

    _warn_overlapping_comments(sections)
    config.sections = sections
    return config


def _warn_overlapping_comments(sections: List[Section]) -> None:
    for section in sections:
        for other in sections:
            if other is section or not section.require_comment or other.is_inert:
                continue
            if section.comment in other.comment and section.comment != other.comment:
                logger.warning(f"COMMENT of section '{section.name}' is contained in the COMMENT "
                               f"of section '{other.name}', it will manage that section's entries too")


def load_config(config_file: str = DEFAULT_CONFIG_FILE, required: bool = False) -> Config:
    """Load the configuration file; a missing default file yields defaults."""
    config = Config(config_file=config_file, lock_file=lock_file_for(config_file))

    if not os.path.exists(config_file):
        if required:
            raise ConfigError(f"Invalid file: {config_file}")
        logger.debug(f"Configuration file '{config_file}' not found, using defaults")
        config.sections = [build_section(MAIN_SECTION, SECTION_DEFAULTS)]
        return config

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            text = f.read()
    except OSError as e:
        raise ConfigError(f"Failed to load configuration file {config_file}: {e}") from e

    return parse_config(text, config, source=config_file)

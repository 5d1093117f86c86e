import pytest

from pihole_listsync.config import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_LOCK_FILE,
    load_config,
    lock_file_for,
    parse_config,
)
from pihole_listsync.exceptions import ConfigError
from pihole_listsync.models import DEFAULT_COMMENT, ListKind, MigrationMode

SAMPLE = """
; global settings
GRAVITY_DB = "/tmp/gravity.db"
TIMEOUT = 10
UPDATE_GRAVITY = false
VERBOSE = yes

BLACKLIST_URL = https://example.com/black.txt https://example.com/black2.txt
WHITELIST_URL = "https://example.com/white.txt"
GROUP_ID = 0
PERSISTENT_GROUP = true
MIGRATION_MODE = replace

[kids]
COMMENT = Managed by pihole-listsync (kids)
GROUP_ID = -2
ADLISTS_URL = https://example.com/kids-adlists.txt
"""


def test_parse_globals_and_sections():
    config = parse_config(SAMPLE)

    assert config.gravity_db == "/tmp/gravity.db"
    assert config.timeout == 10
    assert config.update_gravity is False
    assert config.verbose is True
    assert [s.name for s in config.sections] == ["main", "kids"]

    main, kids = config.sections
    assert main.comment == DEFAULT_COMMENT
    assert main.sources[ListKind.BLACKLIST] == [
        "https://example.com/black.txt",
        "https://example.com/black2.txt",
    ]
    assert main.sources[ListKind.WHITELIST] == ["https://example.com/white.txt"]
    assert main.migration_mode is MigrationMode.REPLACE
    assert main.persistent_group is True


def test_sections_inherit_policy_but_not_urls():
    kids = parse_config(SAMPLE).sections[1]

    assert kids.group_id == -2
    assert kids.persistent_group is True
    assert kids.migration_mode is MigrationMode.REPLACE
    assert ListKind.BLACKLIST not in kids.sources
    assert kids.sources[ListKind.ADLIST] == ["https://example.com/kids-adlists.txt"]


def test_additional_section_requires_comment():
    with pytest.raises(ConfigError):
        parse_config("BLACKLIST_URL = https://a/b\n[other]\nWHITELIST_URL = https://a/c\n")


def test_comment_too_short():
    with pytest.raises(ConfigError):
        parse_config("COMMENT = ab\n")


@pytest.mark.parametrize("text", [
    "GROUP_ID = two\n",
    "REQUIRE_COMMENT = maybe\n",
    "MIGRATION_MODE = 7\n",
])
def test_invalid_values(text):
    with pytest.raises(ConfigError):
        parse_config(text)


def test_migration_mode_numbers():
    assert parse_config("MIGRATION_MODE = 2\n").sections[0].migration_mode is MigrationMode.APPEND


def test_missing_default_file_yields_defaults(tmp_path):
    config = load_config(str(tmp_path / "absent.conf"))

    assert len(config.sections) == 1
    assert config.sections[0].is_inert


def test_missing_explicit_file_is_an_error(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "absent.conf"), required=True)


def test_load_from_file(tmp_path):
    path = tmp_path / "listsync.conf"
    path.write_text("BLACKLIST_URL = /srv/lists/black.txt\nREQUIRE_COMMENT = false\n", encoding="utf-8")

    config = load_config(str(path), required=True)

    assert config.config_file == str(path)
    assert config.sections[0].require_comment is False
    assert config.sections[0].urls(ListKind.BLACKLIST) == ["/srv/lists/black.txt"]


def test_lock_file_depends_on_config_path():
    assert lock_file_for(DEFAULT_CONFIG_FILE) == DEFAULT_LOCK_FILE
    custom = lock_file_for("/opt/custom.conf")
    assert custom != DEFAULT_LOCK_FILE
    assert custom.endswith(".lock")
    assert custom == lock_file_for("/opt/custom.conf")

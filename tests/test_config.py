import pytest

from ermirror.config import Settings, load_env_file

ENV_VARS = [
    "ERMIRROR_DATA_DIR",
    "ERMIRROR_CONCURRENCY",
    "ERMIRROR_MAX_RETRIES",
    "ERMIRROR_BACKOFF_BASE",
    "ERMIRROR_BACKOFF_MAX",
    "ERMIRROR_TIMEOUT",
    "ERMIRROR_ROOT_CODE",
    "ERMIRROR_OVERSEAS",
    "ERMIRROR_MAX_DEPTH",
    "ERMIRROR_BASE_URL",
    "ERMIRROR_USER_AGENT",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    s = Settings.from_env(env_file=None)
    assert s.data_dir == "data"
    assert s.concurrency == 8
    assert s.max_retries == 5
    assert s.backoff_base == 0.1
    assert s.backoff_max is None
    assert s.root_code == "0"
    assert s.overseas is False
    assert s.base_url == "https://2025electionresults.comelec.gov.ph/data/"


def test_values_from_environment(clean_env):
    clean_env.setenv("ERMIRROR_DATA_DIR", "/tmp/mirror")
    clean_env.setenv("ERMIRROR_CONCURRENCY", "32")
    clean_env.setenv("ERMIRROR_BACKOFF_MAX", "2.5")
    clean_env.setenv("ERMIRROR_OVERSEAS", "true")
    s = Settings.from_env(env_file=None)
    assert s.data_dir == "/tmp/mirror"
    assert s.concurrency == 32
    assert s.backoff_max == 2.5
    assert s.overseas is True


def test_invalid_number_names_the_variable(clean_env):
    clean_env.setenv("ERMIRROR_CONCURRENCY", "lots")
    with pytest.raises(ValueError, match="ERMIRROR_CONCURRENCY"):
        Settings.from_env(env_file=None)


def test_override_ignores_unset_flags():
    s = Settings().override(concurrency=None, data_dir="out", overseas=None)
    assert s.concurrency == 8
    assert s.data_dir == "out"
    assert s.overseas is False


def test_env_file_does_not_override_existing_variables(clean_env, tmp_path):
    env = tmp_path / ".env"
    env.write_text(
        "# comment\nERMIRROR_DATA_DIR = 'from-file'\nERMIRROR_CONCURRENCY=3\nnot a pair\n",
        encoding="utf-8",
    )
    clean_env.setenv("ERMIRROR_CONCURRENCY", "12")
    # Empty counts as unset for the loader; setenv makes monkeypatch restore it afterwards
    clean_env.setenv("ERMIRROR_DATA_DIR", "")
    assert load_env_file(env) == ["ERMIRROR_DATA_DIR"]
    s = Settings.from_env(env_file=None)
    assert s.data_dir == "from-file"
    assert s.concurrency == 12


def test_env_file_strips_export_and_matching_quotes(clean_env, tmp_path):
    env = tmp_path / "mirror.env"
    env.write_text(
        "export ERMIRROR_ROOT_CODE=\"R0\"\nERMIRROR_USER_AGENT='it's me'\nERMIRROR_BASE_URL=\"http://x/'\n",
        encoding="utf-8",
    )
    for name in ("ERMIRROR_ROOT_CODE", "ERMIRROR_USER_AGENT", "ERMIRROR_BASE_URL"):
        clean_env.setenv(name, "")

    s = Settings.from_env(env_file=env)

    assert s.root_code == "R0"
    assert s.user_agent == "it's me"
    assert s.base_url == "\"http://x/'"


def test_missing_env_file_is_ignored(clean_env, tmp_path):
    assert load_env_file(tmp_path / "nope.env") == []
    assert Settings.from_env(env_file=tmp_path / "nope.env").data_dir == "data"

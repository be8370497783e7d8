"""Tests for profile and run configuration."""

import pytest
import yaml

from transbatch.config import (
    PipelineConfig,
    Profile,
    build_pipeline_config,
    default_config_dir,
    default_profile_path,
    get_model_cost,
    load_profile,
    save_profile,
    set_profile_value,
    sync_session_from_profile,
)
from transbatch.constants import DEFAULT_TRANSLATE_URL
from transbatch.errors import ConfigError


class TestProfilePersistence:

    def test_config_dir_from_env(self, isolated_home):
        assert default_config_dir() == isolated_home
        assert default_profile_path() == isolated_home / "profile.yaml"

    def test_missing_profile_gives_defaults(self):
        profile = load_profile()

        assert profile.api_key == ""
        assert profile.translate_url == DEFAULT_TRANSLATE_URL
        assert profile.target_lang == "en"
        assert profile.font == "wildwords"
        assert profile.min_font_size == 12
        assert profile.database_mode == "off"
        assert profile.total_credits_used == 0

    def test_round_trip(self, isolated_home):
        profile = Profile(api_key="k", model="deepseek", database_mode="remote",
                          remote_db_url="ws://db:8000", total_credits_used=42)

        path = save_profile(profile)
        loaded = load_profile()

        assert path == isolated_home / "profile.yaml"
        assert loaded == profile
        assert yaml.safe_load(path.read_text())["model"] == "deepseek"

    def test_partial_file_uses_defaults(self, tmp_path):
        path = tmp_path / "profile.yaml"
        path.write_text("api_key: abc\n")

        profile = load_profile(path)

        assert profile.api_key == "abc"
        assert profile.font == "wildwords"

    @pytest.mark.parametrize("content", ["api_key: [unclosed", "- just\n- a list\n", "database_mode: sqlite\n"])
    def test_invalid_profile(self, tmp_path, content):
        path = tmp_path / "profile.yaml"
        path.write_text(content)

        with pytest.raises(ConfigError):
            load_profile(path)

    def test_env_api_key_override(self, monkeypatch):
        profile = Profile(api_key="from-file")
        assert profile.resolved_api_key() == "from-file"

        monkeypatch.setenv("TRANSBATCH_API_KEY", "  from-env ")
        assert profile.resolved_api_key() == "from-env"


class TestSetProfileValue:

    def test_typed_values(self):
        profile = Profile()
        profile = set_profile_value(profile, "stroke_disabled", "true")
        profile = set_profile_value(profile, "min_font_size", "9")
        profile = set_profile_value(profile, "database_mode", "LOCAL")

        assert profile.stroke_disabled is True
        assert profile.min_font_size == 9
        assert profile.database_mode == "local"

    def test_unknown_key(self):
        with pytest.raises(ConfigError, match="Unknown setting"):
            set_profile_value(Profile(), "colour", "blue")

    def test_bad_value(self):
        with pytest.raises(ConfigError):
            set_profile_value(Profile(), "min_font_size", "large")


class TestBuildPipelineConfig:

    def test_defaults(self, input_dir):
        profile = Profile(model="grok-4-fast", target_lang="tr", inpaint_only=True)

        config = build_pipeline_config(profile, input_dir)

        assert config.input_dir == input_dir.resolve()
        assert config.output_dir == input_dir.resolve() / "translated"
        assert config.options.model == "grok-4-fast"
        assert config.options.target_lang == "tr"
        assert config.options.inpaint_only is True
        assert config.include is None
        assert config.cache_path is None
        assert config.wait_for_cache is True

    def test_frozen(self, input_dir):
        config = build_pipeline_config(Profile(), input_dir)
        with pytest.raises(Exception):
            config.output_dir = input_dir

    def test_explicit_output_and_include(self, input_dir, tmp_path):
        config = build_pipeline_config(
            Profile(), input_dir, output_dir=tmp_path / "out", include=[str(input_dir / "ch1")]
        )

        assert config.output_dir == (tmp_path / "out").resolve()
        assert config.include == (str((input_dir / "ch1").resolve()),)

    def test_cache_path_when_enabled(self, input_dir, isolated_home, tmp_path):
        local = build_pipeline_config(Profile(database_mode="local"), input_dir)
        custom = build_pipeline_config(
            Profile(database_mode="remote", cache_path=str(tmp_path / "c.db")), input_dir
        )

        assert local.cache_path == isolated_home / "hash_cache.db"
        assert custom.cache_path == tmp_path / "c.db"

    def test_nested_output_excluded_from_scan(self, input_dir, tmp_path):
        nested = build_pipeline_config(Profile(), input_dir, output_dir=input_dir / "done" / "en")
        outside = build_pipeline_config(Profile(), input_dir, output_dir=tmp_path / "out")

        assert nested.extra_ignores == ("/done/en/",)
        assert outside.extra_ignores == ()

    def test_missing_input_dir(self, tmp_path):
        with pytest.raises(ConfigError):
            build_pipeline_config(Profile(), tmp_path / "nope")

    def test_cost_per_file(self, input_dir):
        assert build_pipeline_config(Profile(), input_dir).cost_per_file == 1
        assert get_model_cost("some-future-model") == 1
        assert isinstance(build_pipeline_config(Profile(), input_dir), PipelineConfig)


class TestSyncSessionFromProfile:

    def test_requires_remote_mode(self):
        with pytest.raises(ConfigError, match="database_mode"):
            sync_session_from_profile(Profile(database_mode="local", remote_db_url="ws://db"))

    def test_requires_url(self):
        with pytest.raises(ConfigError, match="URL"):
            sync_session_from_profile(Profile(database_mode="remote"))

    def test_builds_session(self):
        profile = Profile(database_mode="remote", remote_db_url=" wss://db ",
                          remote_db_user="u", remote_db_pass="p")

        session = sync_session_from_profile(profile)

        assert session.url == "wss://db"
        assert session.auth_mode == "password"
        assert session.timeout == 15.0

"""Tests for configuration management."""

import pytest

from relaycode.config import Config
from relaycode.workspace import Workspace


class TestConfig:
    """Tests for Config class."""

    def test_default_values(self):
        """Test default configuration values."""
        config = Config()

        assert config.llm_provider == "anthropic"
        assert config.api_key == ""
        assert config.stream is True
        assert config.always_allow == []
        assert config.auto_continue == "smart"
        assert config.max_iterations == 0
        assert config.max_malformed_retries == 2
        assert config.default_mode == "normal"
        assert config.job_timeout_seconds is None

    def test_load_from_file(self, config_file):
        """Test loading configuration from TOML file."""
        config = Config()
        success, error = config._load_from_file(config_file)

        assert success is True
        assert error == ""
        assert config.llm_provider == "openai"
        assert config.llm_model == "gpt-4o"
        assert config.stream is False
        assert config.always_allow == ["write_file"]
        assert config.bash_timeout == 60
        assert config.auto_continue == "never"
        assert config.max_iterations == 12
        assert config.default_mode == "auto-accept"
        assert config.job_timeout_seconds == 300

    def test_invalid_auto_continue_is_reported(self, temp_dir):
        """Test that an unknown auto_continue value fails the file load."""
        path = temp_dir / "config.toml"
        path.write_text('[conversation]\nauto_continue = "sometimes"\n')

        config = Config()
        success, error = config._load_from_file(path)

        assert success is False
        assert "auto_continue" in error
        assert config.auto_continue == "smart"

    @pytest.mark.parametrize("value", ["plan", "turbo"])
    def test_invalid_default_mode_is_recorded(self, value, home_dir, temp_workspace):
        """Test plan and unknown starting modes are load errors, not the session mode."""
        temp_workspace.local_config_path.write_text(f'[conversation]\ndefault_mode = "{value}"\n')

        config = Config.load(workspace=temp_workspace)

        assert config.default_mode == "normal"
        assert config.source.local_config is None
        assert len(config.source.errors) == 1
        assert "default_mode must be one of normal, auto-accept" in config.source.errors[0]

    def test_default_mode_accepts_underscores(self, temp_dir):
        """Test auto_accept is read as auto-accept."""
        path = temp_dir / "config.toml"
        path.write_text('[conversation]\ndefault_mode = "AUTO_ACCEPT"\n')

        config = Config()
        assert config._load_from_file(path) == (True, "")
        assert config.default_mode == "auto-accept"

    def test_load_nonexistent_file(self, temp_dir):
        """Test loading from nonexistent file doesn't raise."""
        success, error = Config()._load_from_file(temp_dir / "nonexistent.toml")

        assert success is False
        assert "not found" in error

    def test_load_invalid_toml(self, temp_dir):
        """Test loading invalid TOML file doesn't raise."""
        invalid_file = temp_dir / "invalid.toml"
        invalid_file.write_text("this is not valid toml [[[")

        success, error = Config()._load_from_file(invalid_file)

        assert success is False
        assert error

    def test_load_from_env(self, monkeypatch):
        """Test loading configuration from environment variables."""
        monkeypatch.setenv("RELAYCODE_LLM_PROVIDER", "openai")
        monkeypatch.setenv("RELAYCODE_LLM_MODEL", "gpt-4o")
        monkeypatch.setenv("RELAYCODE_API_KEY", "test-key")
        monkeypatch.setenv("RELAYCODE_STREAM", "false")
        monkeypatch.setenv("RELAYCODE_ALWAYS_ALLOW", "write_file, string_replace")

        config = Config()
        overrides = config._load_from_env()

        assert config.llm_provider == "openai"
        assert config.llm_model == "gpt-4o"
        assert config.api_key == "test-key"
        assert config.stream is False
        assert config.always_allow == ["write_file", "string_replace"]
        assert "RELAYCODE_API_KEY" in overrides

    def test_base_url_switches_anthropic_to_custom(self, monkeypatch):
        """Test that setting a base URL turns the default provider into custom."""
        monkeypatch.setenv("RELAYCODE_BASE_URL", "http://localhost:11434/v1")

        config = Config()
        config._load_from_env()

        assert config.llm_provider == "custom"
        assert config.base_url == "http://localhost:11434/v1"

    def test_openai_key_selects_openai(self, monkeypatch):
        """Test that only an OpenAI key switches the provider to openai."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        config = Config()
        config._load_from_env()

        assert config.api_key == "sk-test"
        assert config.llm_provider == "openai"

    def test_generic_api_key_takes_priority(self, monkeypatch):
        """Test that RELAYCODE_API_KEY beats provider-specific keys."""
        monkeypatch.setenv("RELAYCODE_API_KEY", "primary-key")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "anthropic-key")
        monkeypatch.setenv("OPENAI_API_KEY", "openai-key")

        config = Config()
        config._load_from_env()

        assert config.api_key == "primary-key"

    def test_load_layers_local_over_global(self, home_dir, temp_workspace, monkeypatch):
        """Test that local config overrides global and env overrides both."""
        global_path = Config.get_global_config_path()
        global_path.parent.mkdir(parents=True, exist_ok=True)
        global_path.write_text('[llm]\nprovider = "openai"\nmodel = "gpt-4o"\n')
        temp_workspace.local_config_path.write_text('[llm]\nmodel = "gpt-4o-mini"\n')
        monkeypatch.setenv("RELAYCODE_LLM_MODEL", "from-env")

        config = Config.load(workspace=temp_workspace)

        assert config.llm_provider == "openai"
        assert config.llm_model == "from-env"
        assert config.source.global_config == global_path
        assert config.source.local_config == temp_workspace.local_config_path
        assert config.source.loaded_from == "env"

    def test_save_round_trips_through_load(self, temp_dir):
        """Test that a saved config reads back with the same settings."""
        config = Config()
        config.llm_provider = "openai"
        config.llm_model = "gpt-4o"
        config.always_allow = ["write_file"]
        config.job_timeout = 120

        path = temp_dir / "config.toml"
        config.save(path)

        loaded = Config()
        success, _ = loaded._load_from_file(path)
        assert success is True
        assert loaded.llm_provider == "openai"
        assert loaded.llm_model == "gpt-4o"
        assert loaded.always_allow == ["write_file"]
        assert loaded.job_timeout_seconds == 120

    def test_ssl_context(self, temp_dir):
        """Test SSL verification settings for HTTP clients."""
        config = Config()
        assert config.get_ssl_context() is True

        config.ssl_verify = False
        assert config.get_ssl_context() is False

        cert = temp_dir / "ca.pem"
        cert.write_text("cert")
        config.ssl_cert_path = str(cert)
        assert config.get_ssl_context() == str(cert)

    @pytest.mark.parametrize("value,expected", [(0, None), (-5, None), (30, 30)])
    def test_job_timeout_seconds(self, value, expected):
        """Test that non-positive job timeouts mean no limit."""
        config = Config()
        config.job_timeout = value
        assert config.job_timeout_seconds == expected

    def test_show_config_info(self):
        """Test the config summary mentions provider and sources."""
        info = Config().show_config_info()

        assert "Provider: anthropic" in info
        assert "API Key: NOT SET" in info
        assert "Sources:" in info

"""Pytest fixtures for relaycode tests."""

import pytest
from pathlib import Path
from tempfile import TemporaryDirectory


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def temp_workspace(temp_dir):
    """Create a temporary workspace with .relaycode directory."""
    from relaycode.workspace import Workspace

    workspace = Workspace(root=temp_dir)
    workspace.init(temp_dir)
    return workspace


@pytest.fixture
def sample_file(temp_dir):
    """Create a sample Python file for testing."""
    file_path = temp_dir / "sample.py"
    content = """def hello():
    print("Hello, World!")

class Greeter:
    def greet(self, name):
        return f"Hello, {name}!"

if __name__ == "__main__":
    hello()
"""
    file_path.write_text(content)
    return file_path


@pytest.fixture
def config_file(temp_dir):
    """Create a sample config.toml file."""
    config_path = temp_dir / "config.toml"
    content = """[llm]
provider = "openai"
model = "gpt-4o"
stream = false

[tools]
always_allow = ["write_file"]
bash_timeout = 60

[conversation]
auto_continue = "never"
max_iterations = 12
default_mode = "auto-accept"

[schedule]
job_timeout = 300
"""
    config_path.write_text(content)
    return config_path


@pytest.fixture
def home_dir(temp_dir, monkeypatch):
    """Point the global config location at an empty temporary home."""
    home = temp_dir / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    monkeypatch.delenv("APPDATA", raising=False)
    return home


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Clean environment variables that might affect tests."""
    env_vars = [
        "RELAYCODE_API_KEY",
        "RELAYCODE_LLM_PROVIDER",
        "RELAYCODE_LLM_MODEL",
        "RELAYCODE_BASE_URL",
        "RELAYCODE_STREAM",
        "RELAYCODE_SSL_CERT_PATH",
        "RELAYCODE_SSL_VERIFY",
        "RELAYCODE_ALWAYS_ALLOW",
        "RELAYCODE_DEBUG",
        "ANTHROPIC_API_KEY",
        "OPENAI_API_KEY",
        "SSL_CERT_FILE",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)

"""User configuration management."""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from relaycode.style import dim, yellow

if TYPE_CHECKING:
    from relaycode.workspace import Workspace

# Python 3.11+ has tomllib built-in, older versions need tomli
if sys.version_info >= (3, 11):
    import tomllib as tomli
else:
    import tomli


AUTO_CONTINUE_CHOICES = ("always", "smart", "never")

# Plan mode is entered through its tool, never as a starting mode
DEFAULT_MODE_CHOICES = ("normal", "auto-accept")

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class ConfigSource:
    """Track where config values came from."""
    global_config: Optional[Path] = None
    local_config: Optional[Path] = None
    loaded_from: str = "default"  # "default", "global", "local", "env"
    errors: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        parts = []
        if self.global_config:
            parts.append(f"Global: {self.global_config}")
        if self.local_config:
            parts.append(f"Local: {self.local_config}")
        parts.append(f"Active: {self.loaded_from}")
        if self.errors:
            parts.append(f"Errors: {', '.join(self.errors)}")
        return " | ".join(parts)


@dataclass
class Config:
    """relaycode configuration."""

    # LLM settings
    llm_provider: str = "anthropic"  # "anthropic", "openai", or "custom"
    llm_model: str = "claude-sonnet-4-20250514"
    api_key: str = ""
    base_url: str = ""  # For custom OpenAI-compatible endpoints
    stream: bool = True
    max_tokens: int = 4096

    # SSL/TLS settings (for enterprise environments)
    ssl_cert_path: str = ""
    ssl_verify: bool = True

    # Tool settings
    always_allow: list[str] = field(default_factory=list)
    bash_timeout: int = 30

    # Conversation loop
    auto_continue: str = "smart"
    max_iterations: int = 0  # 0 = no limit
    max_malformed_retries: int = 2
    default_mode: str = "normal"

    # Scheduler
    job_timeout: float = 0  # seconds, 0 = wait forever
    schedule_poll_interval: float = 1.0

    debug: bool = False

    # Config source tracking (not loaded from file)
    _source: ConfigSource = field(default_factory=ConfigSource)

    @property
    def source(self) -> ConfigSource:
        return self._source

    def get_ssl_context(self) -> "str | bool":
        """Get SSL verification setting for HTTP clients.

        Returns:
            - Path to cert file if ssl_cert_path is set and exists
            - False if ssl_verify is False
            - True (default verification) otherwise
        """
        if self.ssl_cert_path:
            cert_path = Path(self.ssl_cert_path).expanduser()
            if cert_path.exists():
                return str(cert_path)
            for origin in (self._source.global_config, self._source.local_config):
                if origin:
                    alt_path = origin.parent / self.ssl_cert_path
                    if alt_path.exists():
                        return str(alt_path)
        if not self.ssl_verify:
            return False
        return True

    @classmethod
    def load(cls, workspace: "Optional[Workspace]" = None, debug: bool = False) -> "Config":
        """Load configuration from files and environment.

        Load order (later overrides earlier):
        1. Global config (~/.relaycode/config.toml or %APPDATA%/relaycode/config.toml)
        2. Local config (.relaycode/config.toml in workspace)
        3. Environment variables
        """
        config = cls()
        config._source = ConfigSource()

        global_config = cls.get_global_config_path()

        if global_config.exists():
            success, error = config._load_from_file(global_config)
            if success:
                config._source.global_config = global_config
                config._source.loaded_from = "global"
                if debug:
                    print(dim(f"[Config] Loaded global: {global_config}"))
            elif error:
                config._source.errors.append(f"global: {error}")
                if debug:
                    print(yellow(f"[Config] Error loading global: {error}"))
        elif debug:
            print(dim(f"[Config] No global config at: {global_config}"))

        local_config = None
        if workspace and workspace.is_initialized and workspace.local_config_path:
            local_config = workspace.local_config_path

        if local_config and local_config.exists():
            success, error = config._load_from_file(local_config)
            if success:
                config._source.local_config = local_config
                config._source.loaded_from = "local"
                if debug:
                    print(dim(f"[Config] Loaded local: {local_config}"))
            elif error:
                config._source.errors.append(f"local: {error}")
                if debug:
                    print(yellow(f"[Config] Error loading local: {error}"))

        env_overrides = config._load_from_env()
        if env_overrides:
            config._source.loaded_from = "env"
            if debug:
                print(dim(f"[Config] Env overrides: {', '.join(env_overrides)}"))

        if debug:
            config.debug = True
            print(dim(f"[Config] Provider: {config.llm_provider}, Model: {config.llm_model}"))
            print(dim(f"[Config] API Key: {'set' if config.api_key else 'NOT SET'}"))

        return config

    @classmethod
    def get_global_config_path(cls) -> Path:
        """Get the global config path for the current platform."""
        if os.name == 'nt':
            appdata = os.environ.get('APPDATA')
            if appdata:
                return Path(appdata) / "relaycode" / "config.toml"
        return Path.home() / ".relaycode" / "config.toml"

    @property
    def job_timeout_seconds(self) -> Optional[float]:
        """Scheduler job timeout, or None to wait forever."""
        return self.job_timeout if self.job_timeout and self.job_timeout > 0 else None

    def show_config_info(self) -> str:
        """Return a summary of current config and sources."""
        lines = [
            "Configuration:",
            f"  Provider: {self.llm_provider}",
            f"  Model: {self.llm_model}",
            f"  API Key: {'configured' if self.api_key else 'NOT SET'}",
            f"  Base URL: {self.base_url or '(default)'}",
            f"  Streaming: {self.stream}",
            f"  Always allow: {', '.join(self.always_allow) or '(none)'}",
            f"  Auto-continue: {self.auto_continue}",
            f"  Default mode: {self.default_mode}",
            f"  Job timeout: {self.job_timeout_seconds or 'none'}",
            "",
            "Sources:",
        ]
        if self._source.global_config:
            lines.append(f"  Global: {self._source.global_config}")
        else:
            lines.append(f"  Global: (not found at {self.get_global_config_path()})")
        if self._source.local_config:
            lines.append(f"  Local: {self._source.local_config}")
        else:
            lines.append("  Local: (none)")
        lines.append(f"  Active source: {self._source.loaded_from}")
        if self._source.errors:
            lines.append(f"  Errors: {', '.join(self._source.errors)}")
        return "\n".join(lines)

    def _load_from_file(self, path: Path) -> tuple[bool, str]:
        """Load configuration from a TOML file.

        Returns:
            Tuple of (success: bool, error_message: str)
        """
        try:
            with open(path, "rb") as f:
                data = tomli.load(f)
        except FileNotFoundError:
            return False, f"File not found: {path}"
        except (OSError, tomli.TOMLDecodeError) as e:
            return False, str(e)

        try:
            if "llm" in data:
                llm = data["llm"]
                if llm.get("provider"):
                    self.llm_provider = llm["provider"]
                if llm.get("model"):
                    self.llm_model = llm["model"]
                if llm.get("api_key"):
                    self.api_key = llm["api_key"]
                if llm.get("base_url"):
                    self.base_url = llm["base_url"]
                if "stream" in llm:
                    self.stream = bool(llm["stream"])
                if "max_tokens" in llm:
                    self.max_tokens = int(llm["max_tokens"])

            if "ssl" in data:
                ssl = data["ssl"]
                if ssl.get("cert_path"):
                    self.ssl_cert_path = ssl["cert_path"]
                if "verify" in ssl:
                    self.ssl_verify = bool(ssl["verify"])

            if "tools" in data:
                tools = data["tools"]
                if "always_allow" in tools:
                    self.always_allow = [str(t) for t in tools["always_allow"]]
                if "bash_timeout" in tools:
                    self.bash_timeout = int(tools["bash_timeout"])

            if "conversation" in data:
                conv = data["conversation"]
                if "auto_continue" in conv:
                    mode = str(conv["auto_continue"]).lower()
                    if mode not in AUTO_CONTINUE_CHOICES:
                        raise ValueError(
                            f"auto_continue must be one of {', '.join(AUTO_CONTINUE_CHOICES)}"
                        )
                    self.auto_continue = mode
                if "max_iterations" in conv:
                    self.max_iterations = int(conv["max_iterations"])
                if "max_malformed_retries" in conv:
                    self.max_malformed_retries = int(conv["max_malformed_retries"])
                if conv.get("default_mode"):
                    mode = str(conv["default_mode"]).strip().lower().replace("_", "-")
                    if mode not in DEFAULT_MODE_CHOICES:
                        raise ValueError(
                            f"default_mode must be one of {', '.join(DEFAULT_MODE_CHOICES)}"
                        )
                    self.default_mode = mode

            if "schedule" in data:
                sched = data["schedule"]
                if "job_timeout" in sched:
                    self.job_timeout = float(sched["job_timeout"])
                if "poll_interval" in sched:
                    self.schedule_poll_interval = float(sched["poll_interval"])

            if "debug" in data:
                self.debug = bool(data["debug"])
        except (TypeError, ValueError) as e:
            return False, f"{path}: {e}"

        return True, ""

    def _load_from_env(self) -> list[str]:
        """Load configuration from environment variables.

        Returns:
            List of environment variables that were applied.
        """
        overrides = []

        if provider := os.environ.get("RELAYCODE_LLM_PROVIDER"):
            self.llm_provider = provider
            overrides.append("RELAYCODE_LLM_PROVIDER")
        if model := os.environ.get("RELAYCODE_LLM_MODEL"):
            self.llm_model = model
            overrides.append("RELAYCODE_LLM_MODEL")
        if base_url := os.environ.get("RELAYCODE_BASE_URL"):
            self.base_url = base_url
            overrides.append("RELAYCODE_BASE_URL")
            if self.llm_provider == "anthropic":
                self.llm_provider = "custom"
        if stream := os.environ.get("RELAYCODE_STREAM"):
            self.stream = stream.lower() in _TRUE_VALUES
            overrides.append("RELAYCODE_STREAM")

        # Generic API key first, then provider-specific keys
        if key := os.environ.get("RELAYCODE_API_KEY"):
            self.api_key = key
            overrides.append("RELAYCODE_API_KEY")
        elif self.llm_provider == "openai" and (key := os.environ.get("OPENAI_API_KEY")):
            self.api_key = key
            overrides.append("OPENAI_API_KEY")
        elif self.llm_provider == "anthropic" and (key := os.environ.get("ANTHROPIC_API_KEY")):
            self.api_key = key
            overrides.append("ANTHROPIC_API_KEY")
        elif not self.api_key:
            if key := os.environ.get("ANTHROPIC_API_KEY"):
                self.api_key = key
                overrides.append("ANTHROPIC_API_KEY")
            elif key := os.environ.get("OPENAI_API_KEY"):
                self.api_key = key
                self.llm_provider = "openai"
                overrides.append("OPENAI_API_KEY")

        if ssl_cert := os.environ.get("RELAYCODE_SSL_CERT_PATH"):
            self.ssl_cert_path = ssl_cert
            overrides.append("RELAYCODE_SSL_CERT_PATH")
        elif ssl_cert := os.environ.get("SSL_CERT_FILE"):
            self.ssl_cert_path = ssl_cert
            overrides.append("SSL_CERT_FILE")

        if ssl_verify := os.environ.get("RELAYCODE_SSL_VERIFY"):
            self.ssl_verify = ssl_verify.lower() not in ("0", "false", "no", "off")
            overrides.append("RELAYCODE_SSL_VERIFY")

        if allow := os.environ.get("RELAYCODE_ALWAYS_ALLOW"):
            self.always_allow = [t.strip() for t in allow.split(",") if t.strip()]
            overrides.append("RELAYCODE_ALWAYS_ALLOW")

        if os.environ.get("RELAYCODE_DEBUG", "").lower() in _TRUE_VALUES:
            self.debug = True
            overrides.append("RELAYCODE_DEBUG")

        return overrides

    def save(self, path: Optional[Path] = None) -> None:
        """Save configuration to a TOML file."""
        if path is None:
            path = self.get_global_config_path()

        path.parent.mkdir(parents=True, exist_ok=True)

        base_url_line = f'base_url = "{self.base_url}"' if self.base_url else '# base_url = ""'
        always_allow = ", ".join(f'"{t}"' for t in self.always_allow)

        if self.ssl_cert_path or not self.ssl_verify:
            ssl_section = (
                "[ssl]\n"
                f'cert_path = "{self.ssl_cert_path}"\n'
                f"verify = {str(self.ssl_verify).lower()}\n"
            )
        else:
            ssl_section = '# [ssl]\n# cert_path = "/path/to/ca-bundle.crt"\n# verify = true\n'

        content = f'''# relaycode configuration
#
# Priority (highest to lowest):
#   1. Environment variables (RELAYCODE_*, ANTHROPIC_API_KEY, OPENAI_API_KEY)
#   2. Local config  (.relaycode/config.toml in project)
#   3. Global config (~/.relaycode/config.toml)

[llm]
# "anthropic", "openai", or "custom" (any OpenAI-compatible endpoint)
provider = "{self.llm_provider}"
model = "{self.llm_model}"
# Prefer ANTHROPIC_API_KEY / OPENAI_API_KEY over storing a key here
# api_key = "sk-..."
{base_url_line}
stream = {str(self.stream).lower()}
max_tokens = {self.max_tokens}

{ssl_section}
[tools]
# Tools that never ask for confirmation
always_allow = [{always_allow}]
bash_timeout = {self.bash_timeout}

[conversation]
# always, smart or never
auto_continue = "{self.auto_continue}"
max_iterations = {self.max_iterations}
max_malformed_retries = {self.max_malformed_retries}
default_mode = "{self.default_mode}"

[schedule]
# Seconds a scheduled job may run before it is cancelled (0 = no limit)
job_timeout = {self.job_timeout}
poll_interval = {self.schedule_poll_interval}
'''
        path.write_text(content, encoding="utf-8")

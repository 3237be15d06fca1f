"""Workspace management - project directory layout and path boundaries."""

import os
import json
from pathlib import Path
from typing import Optional
from datetime import datetime


WORKSPACE_DIR = ".relaycode"
WORKSPACE_FILE = "workspace.json"
PLANS_SUBDIR = "plans"
SCHEDULES_SUBDIR = "schedules"
SESSIONS_SUBDIR = "sessions"

LOCAL_CONFIG_TEMPLATE = """# relaycode local configuration
# Values here override ~/.relaycode/config.toml for this project

[llm]
# provider = "anthropic"
# model = "claude-sonnet-4-20250514"

[tools]
# always_allow = ["write_file", "string_replace"]

[conversation]
# auto_continue = "smart"   # always, smart or never

[schedule]
# job_timeout = 0           # seconds, 0 waits forever
"""

GLOBAL_CONFIG_TEMPLATE = """# relaycode global configuration

[llm]
# provider = "anthropic"  # "anthropic", "openai", or "custom"
# model = "claude-sonnet-4-20250514"
# base_url = ""  # For custom providers

# Examples:
# Anthropic:  provider = "anthropic", model = "claude-sonnet-4-20250514"
# OpenAI:     provider = "openai", model = "gpt-4o"
# Ollama:     provider = "custom", model = "llama3", base_url = "http://localhost:11434/v1"

[tools]
# always_allow = []
bash_timeout = 30
"""


class WorkspaceError(Exception):
    """Workspace-related errors."""
    pass


class Workspace:
    """Knows where the project's .relaycode directory lives."""

    def __init__(self, root: Optional[Path] = None):
        """Initialize workspace.

        Args:
            root: Workspace root directory. If None, searches for .relaycode folder.
        """
        self.root: Optional[Path] = None
        self.config_dir: Optional[Path] = None

        if root:
            self.root = Path(root).resolve()
            self.config_dir = self.root / WORKSPACE_DIR
        else:
            self._find_workspace()

    def _find_workspace(self) -> None:
        """Search for .relaycode directory in current or parent directories."""
        current = Path.cwd().resolve()

        for candidate_root in [current, *current.parents]:
            candidate = candidate_root / WORKSPACE_DIR
            if candidate.is_dir() and (candidate / WORKSPACE_FILE).exists():
                self.root = candidate_root
                self.config_dir = candidate
                return

    @property
    def is_initialized(self) -> bool:
        """Check if workspace is initialized."""
        return self.root is not None and self.config_dir is not None

    @property
    def local_config_path(self) -> Optional[Path]:
        """Path to local config file."""
        if self.config_dir:
            return self.config_dir / "config.toml"
        return None

    @property
    def plans_dir(self) -> Path:
        return self._data_dir() / PLANS_SUBDIR

    @property
    def schedules_dir(self) -> Path:
        """Directory holding scheduled command files."""
        return self._data_dir() / SCHEDULES_SUBDIR

    @property
    def sessions_dir(self) -> Path:
        return self._data_dir() / SESSIONS_SUBDIR

    def _data_dir(self) -> Path:
        if self.config_dir:
            return self.config_dir
        return Path.cwd().resolve() / WORKSPACE_DIR

    @staticmethod
    def global_config_dir() -> Path:
        """Get global config directory (cross-platform)."""
        if os.name == 'nt':
            appdata = os.environ.get('APPDATA')
            if appdata:
                return Path(appdata) / "relaycode"
        return Path.home() / WORKSPACE_DIR

    @staticmethod
    def global_config_path() -> Path:
        """Path to global config file."""
        return Workspace.global_config_dir() / "config.toml"

    def init(self, path: Optional[Path] = None) -> Path:
        """Initialize a new workspace.

        Args:
            path: Directory to initialize. Defaults to current directory.

        Returns:
            Path to the initialized workspace root.
        """
        root = Path(path).resolve() if path else Path.cwd().resolve()
        config_dir = root / WORKSPACE_DIR

        config_dir.mkdir(parents=True, exist_ok=True)
        for sub in (PLANS_SUBDIR, SCHEDULES_SUBDIR, SESSIONS_SUBDIR):
            (config_dir / sub).mkdir(exist_ok=True)

        workspace_data = {
            "version": "1.0",
            "created": datetime.now().isoformat(),
            "root": str(root),
        }
        workspace_file = config_dir / WORKSPACE_FILE
        workspace_file.write_text(json.dumps(workspace_data, indent=2), encoding='utf-8')

        local_config = config_dir / "config.toml"
        if not local_config.exists():
            local_config.write_text(LOCAL_CONFIG_TEMPLATE, encoding='utf-8')

        gitignore = config_dir / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text("# Ignore local state\nconfig.toml\nsessions/\n*.tmp\n",
                                 encoding='utf-8')

        self.root = root
        self.config_dir = config_dir

        return root

    def is_within_bounds(self, path: Path) -> bool:
        """Check if a path is within workspace boundaries."""
        if not self.is_initialized:
            return True  # No boundaries if not initialized

        try:
            Path(path).resolve().relative_to(self.root)
            return True
        except ValueError:
            return False

    def resolve_path(self, path: str) -> Path:
        """Resolve a path relative to workspace root.

        Raises:
            WorkspaceError: If path is outside workspace boundaries.
        """
        p = Path(path).expanduser()

        if not p.is_absolute():
            base = self.root if self.root else Path.cwd()
            p = base / p

        resolved = p.resolve()

        if self.is_initialized and not self.is_within_bounds(resolved):
            raise WorkspaceError(
                f"Access denied: '{path}' is outside workspace boundaries.\n"
                f"Workspace root: {self.root}"
            )

        return resolved

    def relative_path(self, path: Path) -> str:
        """Get path relative to workspace root for display."""
        if not self.root:
            return str(path)

        try:
            return str(Path(path).relative_to(self.root))
        except ValueError:
            return str(path)


def ensure_global_config() -> Path:
    """Ensure global config directory and a starter config exist.

    Returns:
        Path to global config directory.
    """
    global_dir = Workspace.global_config_dir()
    global_dir.mkdir(parents=True, exist_ok=True)

    config_file = global_dir / "config.toml"
    if not config_file.exists():
        config_file.write_text(GLOBAL_CONFIG_TEMPLATE, encoding='utf-8')

    return global_dir

"""Tests for workspace management."""

import os
import json
import pytest
from pathlib import Path

from relaycode.workspace import (
    Workspace,
    WorkspaceError,
    WORKSPACE_DIR,
    WORKSPACE_FILE,
    ensure_global_config,
)


class TestWorkspace:
    """Tests for Workspace class."""

    def test_uninitialized_workspace(self, temp_dir, monkeypatch):
        """Test workspace without .relaycode directory."""
        monkeypatch.chdir(temp_dir)
        workspace = Workspace()

        assert workspace.root is None
        assert workspace.config_dir is None
        assert workspace.is_initialized is False

    def test_init_creates_structure(self, temp_dir):
        """Test that init creates proper workspace structure."""
        workspace = Workspace()
        workspace.init(temp_dir)

        data_dir = temp_dir / WORKSPACE_DIR
        assert data_dir.is_dir()
        assert (data_dir / WORKSPACE_FILE).exists()
        assert (data_dir / "config.toml").exists()
        assert (data_dir / ".gitignore").exists()
        assert (data_dir / "plans").is_dir()
        assert (data_dir / "schedules").is_dir()
        assert (data_dir / "sessions").is_dir()

    def test_init_creates_valid_workspace_json(self, temp_dir):
        """Test that workspace.json is valid JSON with required fields."""
        Workspace().init(temp_dir)

        data = json.loads((temp_dir / WORKSPACE_DIR / WORKSPACE_FILE).read_text())

        assert data["version"] == "1.0"
        assert "created" in data
        assert data["root"] == str(temp_dir)

    def test_init_sets_workspace_properties(self, temp_dir):
        """Test that init sets workspace root and config_dir."""
        workspace = Workspace()
        workspace.init(temp_dir)

        assert workspace.root == temp_dir
        assert workspace.config_dir == temp_dir / WORKSPACE_DIR
        assert workspace.is_initialized is True

    def test_find_workspace_in_parent(self, temp_dir, monkeypatch):
        """Test finding workspace in parent directory."""
        Workspace().init(temp_dir)
        subdir = temp_dir / "subdir" / "deep"
        subdir.mkdir(parents=True)

        monkeypatch.chdir(subdir)
        workspace = Workspace()

        assert workspace.is_initialized is True
        assert workspace.root == temp_dir

    def test_directory_without_marker_file_is_ignored(self, temp_dir, monkeypatch):
        """Test that a bare .relaycode folder without workspace.json is not a workspace."""
        (temp_dir / WORKSPACE_DIR).mkdir()
        monkeypatch.chdir(temp_dir)

        assert Workspace().is_initialized is False

    def test_data_directories(self, temp_workspace):
        """Test plans, schedules and sessions live under .relaycode."""
        data_dir = temp_workspace.root / WORKSPACE_DIR
        assert temp_workspace.plans_dir == data_dir / "plans"
        assert temp_workspace.schedules_dir == data_dir / "schedules"
        assert temp_workspace.sessions_dir == data_dir / "sessions"

    def test_local_config_path(self, temp_workspace):
        """Test local config path property."""
        assert temp_workspace.local_config_path.name == "config.toml"

    def test_local_config_path_uninitialized(self, temp_dir, monkeypatch):
        """Test local config path when not initialized."""
        monkeypatch.chdir(temp_dir)
        assert Workspace().local_config_path is None

    def test_global_config_dir(self, home_dir):
        """Test global config directory location."""
        if os.name != 'nt':
            assert Workspace.global_config_dir() == home_dir / ".relaycode"
        assert Workspace.global_config_path().name == "config.toml"

    def test_ensure_global_config_creates_starter(self, home_dir):
        """Test that the global config is created once and then left alone."""
        global_dir = ensure_global_config()
        config_file = global_dir / "config.toml"
        assert config_file.exists()

        config_file.write_text("# mine\n")
        ensure_global_config()
        assert config_file.read_text() == "# mine\n"

    def test_is_within_bounds(self, temp_workspace):
        """Test bounds checks for internal and external paths."""
        assert temp_workspace.is_within_bounds(temp_workspace.root / "src" / "file.py") is True
        assert temp_workspace.is_within_bounds(temp_workspace.root.parent / "elsewhere") is False

    def test_is_within_bounds_uninitialized(self, temp_dir, monkeypatch):
        """Test that uninitialized workspace allows all paths."""
        monkeypatch.chdir(temp_dir)
        assert Workspace().is_within_bounds(Path("/anywhere")) is True

    def test_resolve_path_relative(self, temp_workspace):
        """Test resolving relative paths."""
        resolved = temp_workspace.resolve_path("src/file.py")

        assert resolved == temp_workspace.root / "src" / "file.py"

    def test_resolve_path_external_raises(self, temp_workspace):
        """Test that resolving external paths raises WorkspaceError."""
        external = str(temp_workspace.root.parent / "outside_workspace" / "file.py")

        with pytest.raises(WorkspaceError) as exc_info:
            temp_workspace.resolve_path(external)

        assert "outside workspace boundaries" in str(exc_info.value)

    def test_resolve_path_dotdot_escape_raises(self, temp_workspace):
        """Test that ../ cannot climb out of the workspace."""
        with pytest.raises(WorkspaceError):
            temp_workspace.resolve_path("../../etc/passwd")

    def test_relative_path(self, temp_workspace):
        """Test display paths for internal and external files."""
        internal = temp_workspace.root / "src" / "file.py"
        external = temp_workspace.root.parent / "outside" / "file.py"

        assert temp_workspace.relative_path(internal) == str(Path("src") / "file.py")
        assert temp_workspace.relative_path(external) == str(external)

    def test_init_preserves_existing_config(self, temp_dir):
        """Test that init doesn't overwrite existing config."""
        Workspace().init(temp_dir)
        config_path = temp_dir / WORKSPACE_DIR / "config.toml"
        config_path.write_text("# Custom config\n")

        Workspace().init(temp_dir)

        assert config_path.read_text() == "# Custom config\n"

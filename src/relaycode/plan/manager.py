"""Plan directory management.

Each plan lives in .relaycode/plans/<slug>/ and holds five markdown
documents. The slug never changes once the plan is created.
"""

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from relaycode.plan.slug import generate_unique_slug, is_valid_slug
from relaycode.plan.templates import render_documents
from relaycode.storage import write_text_atomic
from relaycode.workspace import WORKSPACE_DIR, PLANS_SUBDIR


PLAN_DOCUMENTS = ("proposal.md", "design.md", "spec.md", "tasks.md", "plan.md")


class PlanModeError(Exception):
    """Plan mode operation failed."""
    pass


@dataclass
class DirectoryValidation:
    """Result of checking whether plans can be written."""
    valid: bool
    reason: Optional[str] = None


@dataclass
class PlanInfo:
    """A plan on disk."""
    slug: str
    path: Path


class PlanManager:
    """Create, read, write and list plans in a workspace."""

    def __init__(self, workspace_root: Path):
        self.workspace_root = Path(workspace_root)

    @property
    def plans_dir(self) -> Path:
        return self.workspace_root / WORKSPACE_DIR / PLANS_SUBDIR

    def plan_dir(self, slug: str) -> Path:
        self._check_slug(slug)
        return self.plans_dir / slug

    def _check_slug(self, slug: str) -> None:
        if not is_valid_slug(slug):
            raise PlanModeError(
                f'Invalid plan ID format: "{slug}". '
                "Plan IDs must follow the format {adjective}-{verb}-{noun}"
            )

    def _check_document(self, name: str) -> None:
        if name not in PLAN_DOCUMENTS:
            raise PlanModeError(
                f"Unknown plan document '{name}'. Expected one of: {', '.join(PLAN_DOCUMENTS)}"
            )

    def validate_directory(self) -> DirectoryValidation:
        """Check that the workspace can hold plans.

        The workspace must exist and be readable/writable, and a test file
        must be writable inside the plans directory.
        """
        root = self.workspace_root
        if not root.exists():
            return DirectoryValidation(False, f'Directory does not exist: "{root}"')
        if not os.access(root, os.R_OK | os.W_OK):
            return DirectoryValidation(False, f'Directory is not readable/writable: "{root}"')

        try:
            self.plans_dir.mkdir(parents=True, exist_ok=True)
            test_file = self.plans_dir / ".write-test"
            test_file.write_text("test", encoding="utf-8")
            test_file.unlink()
        except OSError as e:
            return DirectoryValidation(False, f"Cannot write to plans directory: {e}")

        return DirectoryValidation(True)

    def create_plan(self, slug: Optional[str] = None, summary: Optional[str] = None) -> PlanInfo:
        """Create a plan directory seeded with the document templates.

        Raises:
            PlanModeError: If `slug` is invalid or already taken.
        """
        existing = {p.slug for p in self.list_plans()}
        if slug is None:
            slug = generate_unique_slug(existing)
        else:
            self._check_slug(slug)
            if slug in existing:
                raise PlanModeError(f'Plan already exists: "{slug}"')

        directory = self.plans_dir / slug
        directory.mkdir(parents=True, exist_ok=True)
        for name, content in render_documents(slug, summary).items():
            write_text_atomic(directory / name, content)

        return PlanInfo(slug=slug, path=directory)

    def write_document(self, slug: str, name: str, content: str) -> Path:
        """Atomically replace one document of a plan."""
        self._check_document(name)
        directory = self.plan_dir(slug)
        if not directory.is_dir():
            raise PlanModeError(f'Plan not found: "{slug}"')
        path = directory / name
        write_text_atomic(path, content)
        return path

    def read_document(self, slug: str, name: str) -> Optional[str]:
        """Read one document, or None when it does not exist."""
        self._check_document(name)
        path = self.plan_dir(slug) / name
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def read_all(self, slug: str) -> dict[str, str]:
        """Read every existing document of a plan, in workflow order."""
        documents = {}
        for name in PLAN_DOCUMENTS:
            content = self.read_document(slug, name)
            if content is not None:
                documents[name] = content
        return documents

    def list_plans(self) -> list[PlanInfo]:
        if not self.plans_dir.is_dir():
            return []
        plans = []
        for entry in sorted(self.plans_dir.iterdir()):
            if entry.is_dir() and is_valid_slug(entry.name):
                plans.append(PlanInfo(slug=entry.name, path=entry))
        return plans

    def delete_plan(self, slug: str) -> None:
        directory = self.plan_dir(slug)
        if not directory.is_dir():
            raise PlanModeError(f'Plan not found: "{slug}"')
        shutil.rmtree(directory)

    def is_plan_path(self, path, slug: str) -> bool:
        """Whether `path` is one of the documents of plan `slug`."""
        target = Path(path)
        if not target.is_absolute():
            target = self.workspace_root / target
        target = target.resolve()
        directory = (self.plans_dir / slug).resolve()
        return target.parent == directory and target.name in PLAN_DOCUMENTS

"""
End-to-end tests for the Vault Synchronizer and migration, using real git
repositories in temporary directories.
"""

import shutil
import subprocess
from pathlib import Path

import pytest

from notevault.errors import ConfigurationError, ProjectNotDetectedError, VaultNotInitializedError
from notevault.store.libsql_store import LibSqlStore
from notevault.store.settings import VAULT_LAST_SYNC, SettingsStore
from notevault.vault.frontmatter import frontmatter_project
from notevault.vault.migrate import list_note_repos, migrate
from notevault.vault.sync import VaultSynchronizer, build_commit_message
from notevault.models import GitStatusCounts

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

PROJECT_A = "github.com/acme/api"
PROJECT_B = "github.com/acme/web"


def git(cwd: Path, *args: str) -> str:
    proc = subprocess.run(["git", *args], cwd=cwd, capture_output=True, text=True, check=True)
    return proc.stdout.strip()


def write(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    """A vault checkout with one commit, tracking a bare remote."""
    remote = tmp_path / "remote.git"
    subprocess.run(["git", "init", "-q", "--bare", str(remote)], check=True)
    checkout = tmp_path / "vault"
    subprocess.run(["git", "clone", "-q", str(remote), str(checkout)], check=True, capture_output=True)
    git(checkout, "config", "user.email", "test@example.com")
    git(checkout, "config", "user.name", "Test")
    git(checkout, "config", "commit.gpgsign", "false")
    write(checkout / "README.md", "vault\n")
    git(checkout, "add", "-A")
    git(checkout, "commit", "-q", "-m", "init")
    git(checkout, "push", "-q", "-u", "origin", "HEAD")
    return checkout


@pytest.fixture
def settings(tmp_path: Path) -> SettingsStore:
    store = LibSqlStore(tmp_path / "db" / "notevault.db")
    store.init()
    yield SettingsStore(store.conn)
    store.close()


@pytest.fixture
def projects() -> dict[str, str]:
    """Working-copy directory name -> project id."""
    return {"wc_a": PROJECT_A, "wc_a2": PROJECT_A, "wc_b": PROJECT_B}


@pytest.fixture
def syncer(settings: SettingsStore, projects: dict[str, str]) -> VaultSynchronizer:
    return VaultSynchronizer(settings, project_detector=lambda root: projects.get(Path(root).name))


@pytest.fixture
def ready(syncer: VaultSynchronizer, vault: Path) -> VaultSynchronizer:
    syncer.init_vault(str(vault))
    return syncer


def working_copy(tmp_path: Path, name: str) -> Path:
    root = tmp_path / name
    write(root / "ψ/memory/learnings/git-safety.md", "---\ntitle: Git safety\n---\nNever force push.\n")
    write(root / "ψ/memory/retrospectives/2026-10/day.md", "Good day.\n")
    write(root / "ψ/memory/resonance/values.md", "Be kind.\n")
    write(root / "ψ/inbox/handoff/next.md", "Pick up the refactor.\n")
    return root


def commit_count(repo: Path) -> int:
    return int(git(repo, "rev-list", "--count", "HEAD"))


class TestInitVault:
    """Vault configuration."""

    def test_init_local_directory(self, syncer: VaultSynchronizer, settings: SettingsStore, vault: Path):
        """A local checkout is used as-is and persisted."""
        res = syncer.init_vault(str(vault))
        assert res.created is False
        assert Path(res.vault_path) == vault.resolve()
        assert settings.get_bool("vault_enabled") is True
        assert syncer.vault_path() == vault.resolve()

    def test_sync_requires_init(self, syncer: VaultSynchronizer, tmp_path: Path):
        """Sync before init fails before touching anything."""
        root = working_copy(tmp_path, "wc_a")
        with pytest.raises(VaultNotInitializedError):
            syncer.sync(root)


class TestSync:
    """Mirroring a working copy into the vault."""

    def test_sync_maps_tags_and_commits(self, ready: VaultSynchronizer, vault: Path, tmp_path: Path):
        """Nested notes land under the project, are tagged, and the commit is pushed."""
        root = working_copy(tmp_path, "wc_a")
        before = commit_count(vault)

        res = ready.sync(root)

        learning = vault / f"ψ/memory/learnings/{PROJECT_A}/git-safety.md"
        assert learning.read_text(encoding="utf-8") == (
            f"---\ntitle: Git safety\nproject: {PROJECT_A}\n---\nNever force push.\n"
        )
        assert frontmatter_project((vault / f"ψ/inbox/handoff/{PROJECT_A}/next.md").read_text(encoding="utf-8")) == PROJECT_A
        # Universal notes are byte copies at the same path
        assert (vault / "ψ/memory/resonance/values.md").read_text(encoding="utf-8") == "Be kind.\n"
        assert res.added == 4 and res.modified == 0 and res.deleted == 0
        assert res.project == PROJECT_A
        assert res.commit_hash
        assert commit_count(vault) == before + 1
        assert git(vault, "log", "-1", "--format=%s").startswith("vault sync: ")
        assert PROJECT_A in git(vault, "log", "-1", "--format=%s")
        assert git(vault, "rev-parse", "HEAD") == git(vault, "rev-parse", "@{u}")
        assert ready.settings.get_int(VAULT_LAST_SYNC) is not None

    def test_resync_without_changes(self, ready: VaultSynchronizer, vault: Path, tmp_path: Path):
        """A second sync with nothing new does not commit."""
        root = working_copy(tmp_path, "wc_a")
        ready.sync(root)
        before = commit_count(vault)
        res = ready.sync(root)
        assert (res.added, res.modified, res.deleted) == (0, 0, 0)
        assert res.commit_hash is None
        assert commit_count(vault) == before

    def test_dry_run_does_not_commit(self, ready: VaultSynchronizer, vault: Path, tmp_path: Path):
        """Dry runs report the tally only."""
        root = working_copy(tmp_path, "wc_a")
        before = commit_count(vault)
        res = ready.sync(root, dry_run=True)
        assert res.dry_run is True
        assert res.added == 4
        assert res.commit_hash is None
        assert commit_count(vault) == before

    def test_deletion_scoped_to_project(self, ready: VaultSynchronizer, vault: Path, tmp_path: Path):
        """Deleting a local note removes only this project's vault copy."""
        root_a = working_copy(tmp_path, "wc_a")
        root_b = working_copy(tmp_path, "wc_b")
        ready.sync(root_a)
        ready.sync(root_b)

        (root_a / "ψ/memory/learnings/git-safety.md").unlink()
        res = ready.sync(root_a)

        assert not (vault / f"ψ/memory/learnings/{PROJECT_A}/git-safety.md").exists()
        assert (vault / f"ψ/memory/learnings/{PROJECT_B}/git-safety.md").exists()
        assert (vault / f"ψ/memory/retrospectives/{PROJECT_B}/2026-10/day.md").exists()
        assert res.deleted == 1
        assert res.files_removed == 1

    def test_removed_directory_is_pruned(self, ready: VaultSynchronizer, vault: Path, tmp_path: Path):
        """Emptied vault directories are removed."""
        root = working_copy(tmp_path, "wc_a")
        ready.sync(root)
        shutil.rmtree(root / "ψ/memory/retrospectives")
        ready.sync(root)
        assert not (vault / f"ψ/memory/retrospectives/{PROJECT_A}").exists()
        assert (vault / "ψ/memory/learnings").exists()

    def test_malformed_frontmatter_copied_with_warning(self, ready: VaultSynchronizer, vault: Path, tmp_path: Path):
        """Broken front matter is byte-copied and reported."""
        root = working_copy(tmp_path, "wc_a")
        bad = "---\ntitle: [unclosed\n---\nBody\n"
        write(root / "ψ/memory/learnings/bad.md", bad)
        res = ready.sync(root, dry_run=True)
        assert (vault / f"ψ/memory/learnings/{PROJECT_A}/bad.md").read_text(encoding="utf-8") == bad
        assert len(res.warnings) == 1
        assert "bad.md" in res.warnings[0]

    def test_symlinks_not_followed(self, ready: VaultSynchronizer, vault: Path, tmp_path: Path):
        """Symlinked notes are never copied."""
        root = working_copy(tmp_path, "wc_a")
        target = write(tmp_path / "outside.md", "secret\n")
        (root / "ψ/memory/learnings/link.md").symlink_to(target)
        ready.sync(root, dry_run=True)
        assert not (vault / f"ψ/memory/learnings/{PROJECT_A}/link.md").exists()

    def test_missing_notes_dir(self, ready: VaultSynchronizer, tmp_path: Path):
        """A working copy without notes is a configuration error."""
        (tmp_path / "wc_a").mkdir()
        with pytest.raises(ConfigurationError):
            ready.sync(tmp_path / "wc_a")

    def test_universal_project_keeps_nested_paths(self, ready: VaultSynchronizer, vault: Path, tmp_path: Path):
        """Without a project, nested notes keep their local path and are not tagged."""
        root = working_copy(tmp_path, "wc_unknown")
        ready.sync(root, dry_run=True)
        copied = vault / "ψ/memory/learnings/git-safety.md"
        assert copied.read_text(encoding="utf-8") == "---\ntitle: Git safety\n---\nNever force push.\n"


class TestPullAndStatus:
    """Reading back from the vault."""

    def test_pull_copies_project_and_universal(self, ready: VaultSynchronizer, vault: Path, tmp_path: Path):
        """A second checkout of the same project receives its notes."""
        ready.sync(working_copy(tmp_path, "wc_a"))
        ready.sync(working_copy(tmp_path, "wc_b"))
        write(vault / "ψ/memory/resonance/.gitkeep", "")

        fresh = tmp_path / "wc_a2"
        fresh.mkdir()
        res = ready.pull(fresh)

        assert res.project == PROJECT_A
        assert sorted(res.files) == sorted([
            "ψ/inbox/handoff/next.md",
            "ψ/memory/learnings/git-safety.md",
            "ψ/memory/resonance/values.md",
            "ψ/memory/retrospectives/2026-10/day.md",
        ])
        assert frontmatter_project((fresh / "ψ/memory/learnings/git-safety.md").read_text(encoding="utf-8")) == PROJECT_A

    def test_pull_requires_project(self, ready: VaultSynchronizer, tmp_path: Path):
        """Pull needs a detectable project."""
        (tmp_path / "nowhere").mkdir()
        with pytest.raises(ProjectNotDetectedError):
            ready.pull(tmp_path / "nowhere")

    def test_status_unconfigured(self, syncer: VaultSynchronizer, tmp_path: Path):
        """Status before init reports disabled."""
        st = syncer.status(tmp_path)
        assert st.enabled is False
        assert st.repo is None and st.vault_path is None

    def test_status_pending_tally(self, ready: VaultSynchronizer, vault: Path, tmp_path: Path):
        """One untracked, one modified and one deleted file tally {1, 1, 1}."""
        root = working_copy(tmp_path, "wc_a")
        ready.sync(root)
        write(vault / "ψ/memory/resonance/new.md", "new\n")
        write(vault / "ψ/memory/resonance/values.md", "changed\n")
        (vault / "README.md").unlink()

        st = ready.status(root)

        assert st.enabled is True
        assert st.project == PROJECT_A
        assert st.pending == {"added": 1, "modified": 1, "deleted": 1, "total": 3}
        assert st.last_sync is not None and st.last_sync.endswith("Z")

    def test_status_ignores_corrupt_last_sync(self, ready: VaultSynchronizer, settings: SettingsStore,
                                              tmp_path: Path):
        """An unreadable last-sync value is reported as None."""
        settings.set(VAULT_LAST_SYNC, "not-a-number")
        st = ready.status(tmp_path)
        assert st.enabled is True
        assert st.last_sync is None

    def test_status_swallows_git_errors(self, ready: VaultSynchronizer, vault: Path, tmp_path: Path):
        """A vault that is not a git repo reports zero pending."""
        shutil.rmtree(vault / ".git")
        st = ready.status(tmp_path)
        assert st.pending == {"added": 0, "modified": 0, "deleted": 0, "total": 0}


class TestMigrate:
    """Bulk seeding from several working copies."""

    def test_migrate_many(self, ready: VaultSynchronizer, vault: Path, tmp_path: Path):
        """Every detectable repo is copied; the vault itself and unknown repos are skipped."""
        a = working_copy(tmp_path, "wc_a")
        b = working_copy(tmp_path, "wc_b")
        unknown = working_copy(tmp_path, "wc_unknown")
        write(a / "ψ/memory/learnings/.gitkeep", "")
        (vault / "ψ").mkdir(exist_ok=True)
        no_notes = tmp_path / "plain"
        no_notes.mkdir()
        before = commit_count(vault)

        res = migrate(ready, [a, b, unknown, vault, no_notes])

        assert res.repos_found == 4
        assert [r.project for r in res.repos] == [PROJECT_A, PROJECT_B]
        assert res.files_copied == 8
        assert len(res.skipped) == 2
        assert res.committed is True
        assert commit_count(vault) == before + 1
        assert git(vault, "log", "-1", "--format=%s") == "vault migrate: 2 repos (8 files)"
        assert (vault / f"ψ/memory/learnings/{PROJECT_B}/git-safety.md").exists()
        assert not (vault / f"ψ/memory/learnings/{PROJECT_A}/.gitkeep").exists()

    def test_migrate_dry_run_copies_nothing(self, ready: VaultSynchronizer, vault: Path, tmp_path: Path):
        """Dry runs only count."""
        a = working_copy(tmp_path, "wc_a")
        res = migrate(ready, [a], dry_run=True)
        assert res.files_copied == 4
        assert not (vault / "ψ").exists()

    def test_list_note_repos(self, ready: VaultSynchronizer, tmp_path: Path):
        """Listing reports project and file count per repo."""
        a = working_copy(tmp_path, "wc_a")
        unknown = working_copy(tmp_path, "wc_unknown")
        infos = list_note_repos(ready, [a, unknown])
        assert [(i.project, i.file_count) for i in infos] == [(PROJECT_A, 4), ("(unknown)", 4)]


class TestCommitMessage:
    """Commit summary formatting."""

    def test_message_format(self):
        """Zero counts are omitted and the project is appended."""
        from datetime import datetime
        when = datetime(2026, 10, 18, 9, 5, 7)
        msg = build_commit_message(GitStatusCounts(added=2, modified=0, deleted=1), PROJECT_A, when)
        assert msg == f"vault sync: 2026-10-18 09:05:07 (+2, -1) [{PROJECT_A}]"
        assert build_commit_message(GitStatusCounts(), None, when) == "vault sync: 2026-10-18 09:05:07"

from __future__ import annotations


class NoteVaultError(Exception):
    """Base class for all notevault errors."""


class ConfigurationError(NoteVaultError):
    """Raised before any state change when a required setting is missing."""


class VaultNotInitializedError(ConfigurationError):
    def __init__(self, message: str = "Vault not initialized. Run `notevault vault-init <repo>` first.") -> None:
        super().__init__(message)


class ProjectNotDetectedError(ConfigurationError):
    def __init__(self, root: object) -> None:
        super().__init__(f"Cannot detect project for working copy: {root}")
        self.root = root


class GitCommandError(NoteVaultError):
    """A git (or ghq) subprocess exited non-zero."""

    def __init__(self, args: list[str], returncode: int, stderr: str = "") -> None:
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        cmd = " ".join(self.args_list)
        msg = f"`{cmd}` failed with exit code {returncode}"
        if self.stderr:
            msg += f": {self.stderr}"
        super().__init__(msg)


class FrontmatterError(NoteVaultError):
    """Leading front-matter block could not be parsed."""

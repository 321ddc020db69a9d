from __future__ import annotations

from pathlib import Path
from typing import Optional
import dataclasses
import json

import typer

from .config import NoteVaultConfig, load_config
from .embeddings import build_embedder
from .errors import NoteVaultError
from .logging_setup import setup_logging
from .retrieval.retriever import Retriever
from .store.libsql_store import LibSqlStore
from .store.settings import SettingsStore
from .store.vector_index import NumpyVectorIndex
from .vault.mapper import PathMapper
from .vault.migrate import list_note_repos, migrate as run_migrate
from .vault.sync import VaultSynchronizer
from .verify.verifier import IntegrityVerifier

app = typer.Typer(add_completion=False, no_args_is_help=True)


def _cfg(config: str) -> NoteVaultConfig:
    cfg = load_config(config)
    setup_logging(cfg)
    return cfg


def _store(cfg: NoteVaultConfig) -> LibSqlStore:
    store = LibSqlStore(cfg.db_path)
    store.init()
    return store


def _synchronizer(cfg: NoteVaultConfig, store: LibSqlStore) -> VaultSynchronizer:
    return VaultSynchronizer(SettingsStore(store.conn), mapper=PathMapper(notes_dir=cfg.notes_dir))


def _emit(obj) -> None:
    if dataclasses.is_dataclass(obj):
        obj = obj.to_dict() if hasattr(obj, "to_dict") else dataclasses.asdict(obj)
    typer.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def _fail(e: Exception) -> None:
    typer.echo(f"Error: {e}", err=True)
    raise typer.Exit(code=1)


@app.command()
def init(data_dir: str = typer.Option("~/.notevault", help="Directory holding the database"),
         out: str = typer.Option("config.toml", help="Write example config to this path")):
    """Write a starter config.toml."""
    outp = Path(out)
    outp.write_text(f"""[store]
data_dir = "{data_dir}"

[layout]
notes_dir = "ψ"

[retrieval]
default_limit = 5
hybrid_bonus = 0.1

[embeddings]
# sentence_transformers | ollama | off
provider = "sentence_transformers"
model = "BAAI/bge-small-en-v1.5"
device = "cpu"
batch_size = 32

[logging]
level = "INFO"
""", encoding="utf-8")
    typer.echo(f"Wrote {outp}")


@app.command(name="vault-init")
def vault_init(repo: str = typer.Argument(..., help="Local path or ghq repo (owner/repo)"),
               config: str = typer.Option("config.toml")):
    """Configure the shared vault, cloning it with ghq when needed."""
    cfg = _cfg(config)
    store = _store(cfg)
    try:
        _emit(_synchronizer(cfg, store).init_vault(repo))
    except NoteVaultError as e:
        _fail(e)
    finally:
        store.close()


@app.command()
def sync(root: str = typer.Option(".", help="Working-copy root"),
         dry_run: bool = typer.Option(False, "--dry-run", help="Update the vault tree but do not commit"),
         config: str = typer.Option("config.toml")):
    """Mirror this working copy's notes into the vault."""
    cfg = _cfg(config)
    store = _store(cfg)
    try:
        _emit(_synchronizer(cfg, store).sync(Path(root), dry_run=dry_run))
    except NoteVaultError as e:
        _fail(e)
    finally:
        store.close()


@app.command()
def pull(root: str = typer.Option(".", help="Working-copy root"),
         fetch: bool = typer.Option(False, "--fetch", help="Run `git pull --ff-only` in the vault first"),
         config: str = typer.Option("config.toml")):
    """Copy this project's notes (and universal notes) from the vault."""
    cfg = _cfg(config)
    store = _store(cfg)
    try:
        _emit(_synchronizer(cfg, store).pull(Path(root), fetch=fetch))
    except NoteVaultError as e:
        _fail(e)
    finally:
        store.close()


@app.command(name="vault-status")
def vault_status(root: str = typer.Option(".", help="Working-copy root"),
                 config: str = typer.Option("config.toml")):
    """Show vault configuration and pending changes."""
    cfg = _cfg(config)
    store = _store(cfg)
    try:
        _emit(_synchronizer(cfg, store).status(Path(root)))
    finally:
        store.close()


@app.command()
def migrate(repos: list[str] = typer.Option(None, "--repo", help="Working copies to migrate (default: ghq list -p)"),
            list_only: bool = typer.Option(False, "--list", help="Only list repos with a notes dir"),
            dry_run: bool = typer.Option(False, "--dry-run", help="Preview without copying"),
            config: str = typer.Option("config.toml")):
    """Seed the vault from many working copies."""
    cfg = _cfg(config)
    store = _store(cfg)
    paths = [Path(r) for r in repos] if repos else None
    try:
        syncer = _synchronizer(cfg, store)
        if list_only:
            _emit([dataclasses.asdict(r) for r in list_note_repos(syncer, paths)])
        else:
            if dry_run:
                typer.echo("DRY RUN: no files will be copied", err=True)
            _emit(run_migrate(syncer, paths, dry_run=dry_run))
    except NoteVaultError as e:
        _fail(e)
    finally:
        store.close()


@app.command()
def verify(root: str = typer.Option(".", help="Working-copy root"),
           category: Optional[str] = typer.Option(None, help="Only check this category (default: all)"),
           fix: bool = typer.Option(False, "--fix", help="Flag orphaned entries as superseded"),
           config: str = typer.Option("config.toml")):
    """Compare notes on disk with the index."""
    cfg = _cfg(config)
    store = _store(cfg)
    try:
        _emit(IntegrityVerifier(store, cfg.notes_dir).verify(Path(root), category=category, fix=fix))
    finally:
        store.close()


@app.command()
def search(q: str,
           category: Optional[str] = typer.Option(None, help="Category filter (default: all)"),
           limit: Optional[int] = typer.Option(None, help="Page size"),
           offset: int = typer.Option(0, help="Results to skip"),
           mode: str = typer.Option("hybrid", help="hybrid | fts | vector"),
           project: Optional[str] = typer.Option(None, help="Scope to a project plus universal notes"),
           config: str = typer.Option("config.toml")):
    """Hybrid search over indexed notes."""
    cfg = _cfg(config)
    store = _store(cfg)
    vec = NumpyVectorIndex(cfg.db_path, build_embedder(cfg))
    try:
        resp = Retriever(cfg, store, vec).search(q, category=category, limit=limit, offset=offset,
                                                 mode=mode, project=project)
    except ValueError as e:
        raise typer.BadParameter(str(e))
    finally:
        vec.close()
        store.close()
    if resp.warning:
        typer.echo(f"Warning: {resp.warning}", err=True)
    _emit(resp)


@app.command()
def status(config: str = typer.Option("config.toml")):
    """Show index statistics."""
    cfg = _cfg(config)
    store = _store(cfg)
    try:
        _emit(store.status())
    finally:
        store.close()


if __name__ == "__main__":
    app()

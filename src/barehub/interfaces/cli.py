"""Command-line interface for the barehub repository host.

Commands:
- repo: Manage bare repositories (create, delete, rename, list, tree, cat, sync)
- key: Manage SSH keys of the git service account
- info: Show system information
"""

import asyncio
import datetime as dt
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from barehub.config.loader import get_default_config_path, load_config
from barehub.config.schema import AppConfig
from barehub.core.errors import EmptyRepositoryError, RepositoryError
from barehub.entities import TreeNode
from barehub.observability.logging import configure_logging, get_audit_logger, get_logger
from barehub.service import AuthorizedKeysFile, RepositoryService, initialize_service
from barehub.storage.base import StorageError

app = typer.Typer(
    name="barehub",
    help="Bare git repository hosting with tree introspection",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)


async def _open_service(config: AppConfig) -> RepositoryService:
    """Build the repository service, exiting on store initialization errors."""
    try:
        return await initialize_service(config)
    except StorageError as e:
        console.print(f"[red]Error initializing stores: {str(e)}[/red]")
        raise typer.Exit(1)


@contextmanager
def _audited(config: AppConfig, command: str, args: list[str]):
    """Record a mutating command in the audit log with its outcome."""
    start = time.monotonic()
    exit_code = 0
    try:
        yield
    except typer.Exit as e:
        exit_code = e.exit_code
        raise
    except Exception:
        exit_code = 1
        raise
    finally:
        if config.logging.enable_audit:
            audit = get_audit_logger(config.logging.log_dir, config.logging.max_days)
            audit.record(
                command,
                args,
                exit_code=exit_code,
                duration_ms=int((time.monotonic() - start) * 1000),
            )


# Repository commands

repo_app = typer.Typer(help="Manage bare repositories")
app.add_typer(repo_app, name="repo")


@repo_app.command("create")
def repo_create(
    name: str = typer.Argument(..., help="Repository name (letters, digits, '-' and '_')"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Repository description"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Create a new bare repository."""
    asyncio.run(_repo_create_async(name, description, config_file))


async def _repo_create_async(name: str, description: Optional[str], config_file: Optional[Path]):
    """Async implementation of repo create command."""
    config = _load_config(config_file)
    service = await _open_service(config)

    try:
        with _audited(config, "repo create", [name]):
            try:
                record = await service.create_repository(name, description=description)
            except (RepositoryError, StorageError) as e:
                console.print(f"[red]Error creating repository: {str(e)}[/red]")
                raise typer.Exit(1)

        console.print(f"[green]✓[/green] Created repository: {record.name}")
        console.print(f"  Path: {record.path}")
        if record.description:
            console.print(f"  Description: {record.description}")
    finally:
        await service.close()


@repo_app.command("delete")
def repo_delete(
    name: str = typer.Argument(..., help="Repository name"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompt"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Delete a repository and all its history."""
    asyncio.run(_repo_delete_async(name, force, config_file))


async def _repo_delete_async(name: str, force: bool, config_file: Optional[Path]):
    """Async implementation of repo delete command."""
    config = _load_config(config_file)

    if not force:
        typer.confirm(
            f"Are you sure you want to delete repository '{name}' and all its history?",
            abort=True,
        )

    service = await _open_service(config)

    try:
        with _audited(config, "repo delete", [name]):
            try:
                await service.delete_repository(name)
            except (RepositoryError, StorageError) as e:
                console.print(f"[red]Error deleting repository: {str(e)}[/red]")
                raise typer.Exit(1)

        console.print(f"[green]✓[/green] Deleted repository: {name}")
    finally:
        await service.close()


@repo_app.command("rename")
def repo_rename(
    old_name: str = typer.Argument(..., help="Current repository name"),
    new_name: str = typer.Argument(..., help="New repository name"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Rename a repository."""
    asyncio.run(_repo_rename_async(old_name, new_name, config_file))


async def _repo_rename_async(old_name: str, new_name: str, config_file: Optional[Path]):
    """Async implementation of repo rename command."""
    config = _load_config(config_file)
    service = await _open_service(config)

    try:
        with _audited(config, "repo rename", [old_name, new_name]):
            try:
                record = await service.rename_repository(old_name, new_name)
            except (RepositoryError, StorageError) as e:
                console.print(f"[red]Error renaming repository: {str(e)}[/red]")
                raise typer.Exit(1)

        console.print(f"[green]✓[/green] Renamed repository: {old_name} -> {record.name}")
        console.print(f"  Path: {record.path}")
    finally:
        await service.close()


@repo_app.command("list")
def repo_list(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """List repositories on disk with their records."""
    asyncio.run(_repo_list_async(config_file))


async def _repo_list_async(config_file: Optional[Path]):
    """Async implementation of repo list command."""
    config = _load_config(config_file)
    service = await _open_service(config)

    try:
        names = await service.lifecycle.list_repositories()
        records = {record.name: record for record in await service.list_repositories()}

        if not names:
            console.print("[yellow]No repositories found[/yellow]")
            return

        table = Table(title="Repositories")
        table.add_column("Name", style="cyan")
        table.add_column("Description", style="green")
        table.add_column("Created", style="dim")

        for name in names:
            record = records.get(name)
            if record is None:
                table.add_row(name, "[yellow]untracked[/yellow]", "-")
            else:
                table.add_row(name, record.description or "-", _format_timestamp(record.created_at))

        console.print(table)

    except StorageError as e:
        console.print(f"[red]Error listing repositories: {str(e)}[/red]")
        raise typer.Exit(1)
    finally:
        await service.close()


@repo_app.command("tree")
def repo_tree(
    name: str = typer.Argument(..., help="Repository name"),
    json_output: bool = typer.Option(False, "--json", help="Print the tree as JSON"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show the file tree at HEAD."""
    asyncio.run(_repo_tree_async(name, json_output, config_file))


async def _repo_tree_async(name: str, json_output: bool, config_file: Optional[Path]):
    """Async implementation of repo tree command."""
    config = _load_config(config_file)
    service = await _open_service(config)

    try:
        snapshot = await service.snapshot(name)
    except EmptyRepositoryError:
        console.print(f"[yellow]Repository '{name}' has no commits yet[/yellow]")
        return
    except RepositoryError as e:
        console.print(f"[red]Error reading repository tree: {str(e)}[/red]")
        raise typer.Exit(1)
    finally:
        await service.close()

    if json_output:
        console.print_json(snapshot.model_dump_json())
        return

    tree = Tree(f"[bold cyan]{snapshot.name}[/bold cyan]")
    _add_children(tree, snapshot.structure)
    console.print(tree)
    console.print(f"\n{snapshot.total_files} files, {_format_size(snapshot.total_size)}")


@repo_app.command("cat")
def repo_cat(
    name: str = typer.Argument(..., help="Repository name"),
    path: str = typer.Argument(..., help="File path inside the repository"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Print a file from HEAD."""
    asyncio.run(_repo_cat_async(name, path, config_file))


async def _repo_cat_async(name: str, path: str, config_file: Optional[Path]):
    """Async implementation of repo cat command."""
    config = _load_config(config_file)
    service = await _open_service(config)

    try:
        file = await service.read_file(name, path)
    except EmptyRepositoryError:
        console.print(f"[yellow]Repository '{name}' has no commits yet[/yellow]")
        return
    except RepositoryError as e:
        console.print(f"[red]Error reading file: {str(e)}[/red]")
        raise typer.Exit(1)
    finally:
        await service.close()

    if file.is_binary:
        console.print(f"[yellow]Binary file {file.path} ({_format_size(file.size)})[/yellow]")
        return

    console.print(file.content, markup=False, highlight=False)


@repo_app.command("sync")
def repo_sync(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Remove records of repositories that no longer exist on disk."""
    asyncio.run(_repo_sync_async(config_file))


async def _repo_sync_async(config_file: Optional[Path]):
    """Async implementation of repo sync command."""
    config = _load_config(config_file)
    service = await _open_service(config)

    try:
        with _audited(config, "repo sync", []):
            try:
                removed = await service.sync_records()
            except StorageError as e:
                console.print(f"[red]Error syncing records: {str(e)}[/red]")
                raise typer.Exit(1)
    finally:
        await service.close()

    if not removed:
        console.print("[green]✓[/green] Records are in sync")
        return

    for name in removed:
        console.print(f"[green]✓[/green] Removed stale record: {name}")


# SSH key commands

key_app = typer.Typer(help="Manage SSH keys of the git service account")
app.add_typer(key_app, name="key")


@key_app.command("add")
def key_add(
    public_key: Optional[str] = typer.Argument(None, help="Public key line"),
    key_file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read the public key from a file"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Authorize a public key."""
    asyncio.run(_key_add_async(public_key, key_file, config_file))


async def _key_add_async(public_key: Optional[str], key_file: Optional[Path], config_file: Optional[Path]):
    """Async implementation of key add command."""
    config = _load_config(config_file)
    key = _resolve_key(public_key, key_file)
    keys = AuthorizedKeysFile(config.ssh.authorized_keys_path)

    with _audited(config, "key add", [_key_label(key)]):
        try:
            await keys.add_key(key)
        except (ValueError, OSError) as e:
            console.print(f"[red]Error adding key: {str(e)}[/red]")
            raise typer.Exit(1)

    console.print(f"[green]✓[/green] Added key: {_key_label(key)}")


@key_app.command("remove")
def key_remove(
    public_key: Optional[str] = typer.Argument(None, help="Public key line"),
    key_file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read the public key from a file"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Revoke a public key."""
    asyncio.run(_key_remove_async(public_key, key_file, config_file))


async def _key_remove_async(public_key: Optional[str], key_file: Optional[Path], config_file: Optional[Path]):
    """Async implementation of key remove command."""
    config = _load_config(config_file)
    key = _resolve_key(public_key, key_file)
    keys = AuthorizedKeysFile(config.ssh.authorized_keys_path)

    with _audited(config, "key remove", [_key_label(key)]):
        try:
            removed = await keys.remove_key(key)
        except (ValueError, OSError) as e:
            console.print(f"[red]Error removing key: {str(e)}[/red]")
            raise typer.Exit(1)

    if removed == 0:
        console.print("[yellow]Key not found[/yellow]")
    else:
        console.print(f"[green]✓[/green] Removed {removed} line(s)")


@key_app.command("replace")
def key_replace(
    old_key: str = typer.Argument(..., help="Key to revoke"),
    new_key: Optional[str] = typer.Argument(None, help="Key to authorize instead"),
    key_file: Optional[Path] = typer.Option(None, "--file", "-f", help="Read the new key from a file"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Replace one public key with another."""
    asyncio.run(_key_replace_async(old_key, new_key, key_file, config_file))


async def _key_replace_async(
    old_key: str, new_key: Optional[str], key_file: Optional[Path], config_file: Optional[Path]
):
    """Async implementation of key replace command."""
    config = _load_config(config_file)
    key = _resolve_key(new_key, key_file)
    keys = AuthorizedKeysFile(config.ssh.authorized_keys_path)

    with _audited(config, "key replace", [_key_label(old_key), _key_label(key)]):
        try:
            removed = await keys.replace_key(old_key, key)
        except (ValueError, OSError) as e:
            console.print(f"[red]Error replacing key: {str(e)}[/red]")
            raise typer.Exit(1)

    if removed == 0:
        console.print("[yellow]Old key not found; new key added[/yellow]")
    console.print(f"[green]✓[/green] Authorized key: {_key_label(key)}")


@key_app.command("list")
def key_list(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """List authorized public keys."""
    asyncio.run(_key_list_async(config_file))


async def _key_list_async(config_file: Optional[Path]):
    """Async implementation of key list command."""
    config = _load_config(config_file)
    keys = await AuthorizedKeysFile(config.ssh.authorized_keys_path).list_keys()

    if not keys:
        console.print("[yellow]No keys found[/yellow]")
        return

    table = Table(title="Authorized Keys")
    table.add_column("Type", style="cyan")
    table.add_column("Comment", style="green")
    table.add_column("Key", style="dim")

    for line in keys:
        parts = line.split()
        key_type = parts[0] if parts else "-"
        body = parts[1] if len(parts) > 1 else ""
        comment = " ".join(parts[2:]) or "-"
        table.add_row(key_type, comment, _shorten(body))

    console.print(table)


@app.command()
def info(
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show system information and configuration."""
    config = _load_config(config_file)

    table = Table(title="Barehub System Information")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Base Directory", str(config.storage.base_directory))
    table.add_row("Worktree Root", str(config.storage.worktree_root))
    table.add_row("Service User", config.storage.service_user or "-")
    table.add_row("Git Binary", config.git.git_binary)
    table.add_row("Introspection", config.introspection.strategy.value)
    table.add_row("Metadata Store", config.metadata_store.store_type.value)
    table.add_row("Authorized Keys", str(config.ssh.authorized_keys_path))
    table.add_row("Log Level", config.logging.level.value)

    console.print(table)


def _add_children(branch: Tree, node: TreeNode) -> None:
    for child in node.children:
        if child.is_file:
            branch.add(f"{child.name} [dim]({_format_size(child.size)})[/dim]")
        else:
            _add_children(branch.add(f"[bold blue]{child.name}/[/bold blue]"), child)


def _resolve_key(public_key: Optional[str], key_file: Optional[Path]) -> str:
    if key_file is not None:
        try:
            return key_file.read_text(encoding="utf-8").strip()
        except OSError as e:
            console.print(f"[red]Error reading key file: {str(e)}[/red]")
            raise typer.Exit(1)
    if public_key is None:
        console.print("[red]Provide a public key or --file[/red]")
        raise typer.Exit(1)
    return public_key


def _key_label(key: str) -> str:
    parts = key.split()
    if len(parts) > 2:
        return " ".join(parts[2:])
    return _shorten(parts[-1] if parts else key)


def _shorten(text: str, width: int = 24) -> str:
    if len(text) <= width:
        return text
    return f"{text[:10]}...{text[-10:]}"


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KiB", "MiB"):
        if value < 1024:
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GiB"


def _format_timestamp(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _load_config(config_file: Optional[Path]) -> AppConfig:
    """Load configuration and setup logging."""
    if config_file is None:
        config_file = get_default_config_path()

    config = load_config(config_file, profile=os.getenv("BAREHUB_PROFILE"))
    configure_logging(config.logging)

    return config


if __name__ == "__main__":
    app()

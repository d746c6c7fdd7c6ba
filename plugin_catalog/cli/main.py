"""Main CLI interface for the Plugin Catalog."""

import click
import json
import logging
import threading
from pathlib import Path
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn
from ..core.scanner import CancellationToken, PluginScanner
from ..core.grouper import build_plugin_units
from ..core.categorizer import FileCategorizer
from ..core.models import ScanOptions, ScanResult
from ..core.normalizer import normalize_file_name, validate_name
from ..core.parser import has_ambiguous_version, parse_file_name
from ..core.snapshot import load_snapshot
from ..core.exceptions import (
    PluginCatalogError, FileSystemError, PermissionDeniedError, PathNotFoundError,
    DirectoryUnreadableError, InvalidCharacterSetError, ScanError, ConfigurationError
)

# Initialize Rich console
console = Console()


@click.group()
@click.version_option(version="0.1.0")
@click.option('--config', '-c', type=click.Path(path_type=Path),
              help='Configuration file path')
@click.option('--log-level', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Set logging level (overrides config)')
@click.option('--log-file', type=click.Path(path_type=Path),
              help='Log file path (overrides config)')
@click.pass_context
def cli(ctx, config, log_level, log_file):
    """Plugin Catalog - Normalize and catalog audio plugin downloads."""
    from ..core.config import setup_config
    from ..core.logging_config import setup_logging, LoggingConfig

    config_manager = setup_config(config)
    app_config = config_manager.get_config()

    # Override logging config if command line options provided
    if log_level or log_file:
        logging_config = LoggingConfig(
            level=log_level or app_config.logging.level,
            file_path=log_file or app_config.logging.file_path,
            file_enabled=app_config.logging.file_enabled,
            console_enabled=app_config.logging.console_enabled,
            format=app_config.logging.format,
            file_max_size_mb=app_config.logging.file_max_size_mb,
            file_backup_count=app_config.logging.file_backup_count
        )
    else:
        logging_config = app_config.logging

    setup_logging(logging_config)

    # Store config in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj['config'] = app_config
    ctx.obj['config_manager'] = config_manager


@cli.command()
@click.argument("root", type=click.Path(path_type=Path), required=False)
@click.option("--dry-run", is_flag=True, help="Show what would be renamed without touching any file")
@click.option("--no-rename", is_flag=True, help="Catalog files without renaming them")
@click.option("--no-image-rename", is_flag=True, help="Leave image file names unchanged")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def scan(ctx, root: Path, dry_run: bool, no_rename: bool, no_image_rename: bool, verbose: bool):
    """Scan a plugin folder, normalize file names and write the catalog."""
    app_config = ctx.obj['config']

    if root is None:
        root = app_config.scan.main_folder
    if root is None:
        raise click.UsageError("No ROOT given and no scan.main_folder configured")

    options = ScanOptions(
        rename_files=app_config.scan.rename_files and not no_rename,
        rename_images=app_config.scan.rename_images and not no_image_rename,
        dry_run=dry_run,
        verbose=verbose
    )

    if verbose:
        console.print(f"[bold blue]Starting scan of {root}[/bold blue]")
        console.print(f"Options: rename_files={options.rename_files}, "
                      f"rename_images={options.rename_images}, dry_run={dry_run}")
    if dry_run:
        console.print("[bold yellow]DRY RUN MODE: No files will be renamed[/bold yellow]")

    outcome = {}
    cancel_token = CancellationToken()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console
    ) as progress:
        scan_task = progress.add_task("Scanning developer folders...", total=None)

        def on_progress(done: int, total: int):
            progress.update(scan_task, completed=done, total=total,
                            description=f"Scanned {done}/{total} developer folders")

        scanner = PluginScanner(config=app_config, progress_callback=on_progress,
                                cancel_token=cancel_token)

        def run_scan():
            try:
                outcome['result'] = scanner.scan(root, options)
            except Exception as e:
                outcome['error'] = e

        worker = threading.Thread(target=run_scan, name="plugin-scan", daemon=True)
        worker.start()
        try:
            while worker.is_alive():
                worker.join(0.1)
        except KeyboardInterrupt:
            scanner.cancel_scan()
            progress.update(scan_task, description="Stopping after the current plugin...")
            worker.join()

    if 'error' in outcome:
        handle_cli_error(outcome['error'], "scan")
        raise click.Abort()

    _display_scan_result(outcome['result'], verbose)


@cli.command()
@click.argument("name")
@click.option("--developer", "-d", help="Developer folder name used to build the canonical name")
def parse(name: str, developer: str):
    """Show the fields parsed from a plugin file NAME."""
    parsed = parse_file_name(name, developer)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for field_name in ("developer", "plugin_name", "platform", "version", "suffix", "extension"):
        value = getattr(parsed, field_name)
        table.add_row(field_name, value if value else "[dim]-[/dim]")
    console.print(table)

    if has_ambiguous_version(name):
        console.print("[yellow]Several version-like tokens found; the first one was used.[/yellow]")

    if developer:
        try:
            validate_name(developer, "developer name")
        except InvalidCharacterSetError as e:
            handle_cli_error(e, "parse")
            raise click.Abort()
        console.print(f"Canonical name: [bold green]{normalize_file_name(parsed, developer)}[/bold green]")


@cli.command()
@click.argument("directory", type=click.Path(path_type=Path))
@click.pass_context
def group(ctx, directory: Path):
    """Show the plugin units a developer DIRECTORY would produce."""
    scanner = PluginScanner(config=ctx.obj['config'])
    try:
        if not directory.is_dir():
            raise PathNotFoundError(f"Directory does not exist: {directory}")
        files = scanner.find_plugin_files(directory)
    except FileSystemError as e:
        handle_cli_error(e, "group")
        raise click.Abort()

    units = build_plugin_units(files, directory)
    if not units:
        console.print("[yellow]No plugin files found.[/yellow]")
        return

    categorizer = FileCategorizer()
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Plugin", style="cyan")
    table.add_column("Zip", style="green")
    table.add_column("Installer", style="green")
    table.add_column("Other files", style="dim")

    for unit in units:
        categorized = categorizer.categorize(unit.files)
        others = (categorized.documentation_files + categorized.image_files
                  + categorized.other_files)
        table.add_row(
            unit.base_name,
            categorized.zip_file.name if categorized.zip_file else "-",
            categorized.executable_file.name if categorized.executable_file else "-",
            "\n".join(p.name for p in others) or "-"
        )

    console.print(table)
    console.print(f"\n[bold green]{len(units)} plugin(s) in {directory.name}[/bold green]")


@cli.command()
@click.argument("root", type=click.Path(path_type=Path), required=False)
@click.option("--format", "-f", "output_format", type=click.Choice(["table", "json"]),
              default="table", help="Output format")
@click.pass_context
def catalog(ctx, root: Path, output_format: str):
    """Print the catalog written by the last scan of ROOT."""
    app_config = ctx.obj['config']
    root = root or app_config.scan.main_folder
    if root is None:
        raise click.UsageError("No ROOT given and no scan.main_folder configured")

    try:
        snapshot = load_snapshot(root, app_config.scan.snapshot_filename)
    except PathNotFoundError:
        console.print(f"[yellow]No catalog found in {root}. Run a scan first.[/yellow]")
        raise click.Abort()
    except (FileSystemError, ValueError) as e:
        handle_cli_error(e, "catalog")
        raise click.Abort()

    if output_format == "json":
        click.echo(json.dumps(snapshot, indent=2, ensure_ascii=False))
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Developer", style="cyan")
    table.add_column("Plugin", style="bold")
    table.add_column("Zip", style="green")
    table.add_column("Installer", style="green")
    table.add_column("Docs", justify="right")
    table.add_column("Images", justify="right")
    table.add_column("Other", justify="right")

    for developer, plugins in snapshot.get("developers", {}).items():
        for plugin_name, record in plugins.items():
            table.add_row(
                developer,
                plugin_name,
                Path(record["zip_file"]).name if record.get("zip_file") else "-",
                Path(record["executable_file"]).name if record.get("executable_file") else "-",
                str(len(record.get("documentation_files", []))),
                str(len(record.get("image_files", []))),
                str(len(record.get("other_files", [])))
            )

    console.print(table)
    counts = snapshot.get("counts", {})
    console.print(f"\nDevelopers: [bold]{counts.get('developers', 0)}[/bold]  "
                  f"Plugins: [bold cyan]{counts.get('plugins', 0)}[/bold cyan]  "
                  f"Zips: [bold green]{counts.get('zips', 0)}[/bold green]")
    if snapshot.get("generated_at"):
        console.print(f"[dim]Generated {snapshot['generated_at']}[/dim]")


@cli.command()
@click.option("--port", "-p", type=int, help="Port to run the web server on (default from config)")
@click.option("--host", "-h", help="Host to bind the web server to (default from config)")
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.pass_context
def web(ctx, port: int, host: str, debug: bool):
    """Start the JSON API server."""
    app_config = ctx.obj['config']
    host = host or app_config.web.host
    port = port or app_config.web.port
    debug = debug or app_config.web.debug

    try:
        from ..web.app import create_app

        console.print("[bold blue]Starting Plugin Catalog API...[/bold blue]")
        console.print(f"Server: http://{host}:{port}/api")
        console.print(f"Debug mode: {'enabled' if debug else 'disabled'}")
        console.print("\n[bold green]Press Ctrl+C to stop the server[/bold green]\n")

        app = create_app({
            'DEBUG': debug,
            'HOST': host,
            'PORT': port
        })

        app.run(host=host, port=port, debug=debug)

    except KeyboardInterrupt:
        console.print("\n[bold yellow]Server stopped by user[/bold yellow]")
    except OSError as e:
        console.print(f"[bold red]Error starting web server: {e}[/bold red]")
        raise click.Abort()


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command('show')
@click.pass_context
def show_config(ctx):
    """Show current configuration."""
    app_config = ctx.obj['config']

    console.print("[bold blue]Current Configuration:[/bold blue]\n")

    console.print("[bold]Scan:[/bold]")
    console.print(f"  Main folder: {app_config.scan.main_folder or '-'}")
    console.print(f"  Extensions: {', '.join(app_config.scan.extensions)}")
    console.print(f"  Folders to ignore: {', '.join(app_config.scan.folders_to_ignore)}")
    console.print(f"  Rename files: {app_config.scan.rename_files}")
    console.print(f"  Rename images: {app_config.scan.rename_images}")
    console.print(f"  Rename workers: {app_config.scan.rename_workers}")
    console.print(f"  Snapshot file: {app_config.scan.snapshot_filename}")
    console.print(f"  Audit log file: {app_config.scan.audit_log_filename}")

    console.print("\n[bold]Web:[/bold]")
    console.print(f"  Host: {app_config.web.host}")
    console.print(f"  Port: {app_config.web.port}")
    console.print(f"  Debug: {app_config.web.debug}")

    console.print("\n[bold]Logging:[/bold]")
    console.print(f"  Level: {app_config.logging.level}")
    console.print(f"  File enabled: {app_config.logging.file_enabled}")
    console.print(f"  File path: {app_config.logging.file_path}")
    console.print(f"  File max size: {app_config.logging.file_max_size_mb}MB")
    console.print(f"  File backup count: {app_config.logging.file_backup_count}")
    console.print(f"  Console enabled: {app_config.logging.console_enabled}")


@config.command('set')
@click.argument('key')
@click.argument('value')
@click.pass_context
def set_config(ctx, key, value):
    """Set a configuration value. Use dot notation (e.g., scan.rename_workers)."""
    config_manager = ctx.obj['config_manager']

    keys = key.split('.')
    if len(keys) != 2:
        console.print("[red]Error:[/red] Key must be in format 'section.key' (e.g., 'scan.main_folder')")
        raise click.Abort()

    section, setting = keys
    try:
        converted_value = config_manager.update_config(section, setting, value)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise click.Abort()

    console.print(f"[green]✓[/green] Set {key} = {converted_value}")


@config.command('reset')
@click.confirmation_option(prompt='Are you sure you want to reset all configuration to defaults?')
@click.pass_context
def reset_config(ctx):
    """Reset configuration to default values."""
    ctx.obj['config_manager'].reset_to_defaults()
    console.print("[green]✓ Configuration reset to defaults[/green]")


@config.command('export')
@click.argument('file_path', type=click.Path(path_type=Path))
@click.pass_context
def export_config(ctx, file_path):
    """Export configuration to JSON file."""
    config_manager = ctx.obj['config_manager']

    try:
        config_manager.export_to_json(file_path)
        console.print(f"[green]✓ Configuration exported to {file_path}[/green]")
    except OSError as e:
        console.print(f"[red]Error exporting configuration:[/red] {e}")
        raise click.Abort()


def _display_scan_result(result: ScanResult, verbose: bool):
    """Print the counts and problems of a finished scan."""
    if result.stopped:
        console.print(f"\n[bold yellow]Scan stopped[/bold yellow] after {result.duration:.2f} seconds")
    else:
        console.print(f"\n[bold green]✓ Scan completed[/bold green] in {result.duration:.2f} seconds")

    console.print(f"Developers: [bold]{result.developers}[/bold]")
    console.print(f"Plugins: [bold cyan]{result.plugins}[/bold cyan]")
    console.print(f"Zips: [bold green]{result.zips}[/bold green]")
    console.print(f"Files renamed: [bold]{result.renamed}[/bold]")
    if result.failed:
        console.print(f"Failed renames: [bold red]{result.failed}[/bold red]")

    if verbose and result.catalog:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Developer", style="cyan")
        table.add_column("Plugin", style="bold")
        table.add_column("Files", justify="right")
        for developer in sorted(result.catalog, key=str.casefold):
            for plugin_name, record in result.catalog[developer].items():
                table.add_row(developer, plugin_name, str(len(record.all_files())))
        console.print(table)

    if result.errors:
        console.print(f"[bold yellow]Problems: {len(result.errors)}[/bold yellow]")
        shown = result.errors if verbose else result.errors[:10]
        for error in shown:
            console.print(f"  [yellow]- {error}[/yellow]")
        if len(result.errors) > len(shown):
            console.print(f"  [dim]... and {len(result.errors) - len(shown)} more (use -v)[/dim]")


def handle_cli_error(error: Exception, operation: str = "operation") -> None:
    """
    Handle CLI errors with appropriate user feedback.

    Args:
        error: The exception that occurred
        operation: Description of the operation that failed
    """
    if isinstance(error, PathNotFoundError):
        console.print(f"[bold red]Error:[/bold red] {error}")
        console.print("[yellow]Please check that the path exists and is accessible.[/yellow]")
    elif isinstance(error, PermissionDeniedError):
        console.print(f"[bold red]Permission Error:[/bold red] {error}")
        console.print("[yellow]Please check folder permissions or run with appropriate privileges.[/yellow]")
    elif isinstance(error, DirectoryUnreadableError):
        console.print(f"[bold red]Error:[/bold red] {error}")
        console.print("[yellow]The folder could not be listed.[/yellow]")
    elif isinstance(error, InvalidCharacterSetError):
        console.print(f"[bold red]Invalid Name:[/bold red] {error}")
    elif isinstance(error, ScanError):
        console.print(f"[bold red]Scan Error:[/bold red] {error}")
    elif isinstance(error, FileSystemError):
        console.print(f"[bold red]File System Error:[/bold red] {error}")
        console.print("[yellow]Please check file system permissions and available space.[/yellow]")
    elif isinstance(error, PluginCatalogError):
        console.print(f"[bold red]Error:[/bold red] {error}")
    else:
        console.print(f"[bold red]Unexpected Error:[/bold red] {error}")
        console.print("[yellow]An unexpected error occurred. Please check the logs for more details.[/yellow]")

    # Log the full error for debugging
    logging.getLogger(__name__).error(f"CLI error in {operation}: {error}", exc_info=error)


if __name__ == "__main__":
    cli()

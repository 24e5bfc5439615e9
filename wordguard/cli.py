"""CLI entry point for wordguard"""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from .config import Config, ConfigError

app = typer.Typer(
    name="wordguard",
    help="Language server that reports configured words as diagnostics",
    add_completion=False,
)

# stdout belongs to the protocol while serving, so all CLI chatter goes to stderr
err_console = Console(stderr=True)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _load_config(path: Path | None) -> Config:
    try:
        return Config.load(path)
    except ConfigError as e:
        err_console.print(f"[red]Config error:[/red] {escape(str(e))}")
        raise typer.Exit(2)


@app.command()
def serve(
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to a wordguard.json"),
    log_file: Path = typer.Option(None, "--log-file", help="Also write logs to this file"),
    log_level: str = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    port: int = typer.Option(None, "--port", "-p", help="Serve one client over TCP instead of stdio"),
    host: str = typer.Option("127.0.0.1", "--host", help="Address to bind with --port"),
):
    """Run the language server (stdio by default)"""
    from .lsp.server import start_server

    config = _load_config(config_path)
    if log_file is not None:
        config.logging.file = log_file
    if log_level is not None:
        level = log_level.upper()
        if level not in LOG_LEVELS:
            err_console.print(f"[red]Unknown log level:[/red] {escape(log_level)}")
            raise typer.Exit(2)
        config.logging.level = level

    code = start_server(config, host=host, port=port)
    raise typer.Exit(code)


@app.command()
def check(
    files: list[Path] = typer.Argument(..., help="Files to scan"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to a wordguard.json"),
):
    """Scan files once and print their diagnostics"""
    from .analyzer import AnalyzerError, create_analyzer
    from .lsp.diagnostics import diagnose

    config = _load_config(config_path)
    analyzer = create_analyzer(config.analyzer)
    console = Console(highlight=False, emoji=False)

    total = 0
    for path in files:
        try:
            text = path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            err_console.print(f"[red]Cannot read {escape(str(path))}:[/red] {escape(str(e))}")
            raise typer.Exit(2)

        try:
            diagnostics = diagnose(analyzer, text)
        except AnalyzerError as e:
            err_console.print(f"[red]{escape(str(path))}:[/red] {escape(str(e))}")
            raise typer.Exit(2)

        for diagnostic in diagnostics:
            start = diagnostic.range.start
            code = f" [{diagnostic.code}]" if diagnostic.code else ""
            console.print(escape(
                f"{path}:{start.line + 1}:{start.character + 1}: "
                f"{diagnostic.severity.name.lower()}: {diagnostic.message}{code}"
            ), soft_wrap=True)
            total += 1

    if total:
        err_console.print(f"{total} finding(s)")
        raise typer.Exit(1)


@app.command("config")
def show_config(
    config_path: Path = typer.Option(None, "--config", "-c", help="Path to a wordguard.json"),
):
    """Print the effective configuration"""
    config = _load_config(config_path)
    typer.echo(json.dumps(config.model_dump(mode="json"), indent=2))


def main():
    app()


if __name__ == "__main__":
    main()

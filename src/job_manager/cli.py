#!/usr/bin/env python3
# cli.py
# Job Manager CLI
#
# Run workers, enqueue jobs and inspect their documents and progress.
# Powered by Typer + Rich

import importlib
import json
import logging
import signal
import threading
from typing import Any, Dict, List, Optional, Tuple, Type

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .config import Config
from .errors import JobManagerError
from .factory import new_manager
from .manager import Manager
from .models import TERMINAL_STATES, Job, JobDocument

app = typer.Typer(
    help="Redis job manager — run workers and inspect jobs",
    add_completion=False,
)

console = Console()


# -----------------------------
# UI helpers
# -----------------------------

def header(title: str, subtitle: str):
    console.print(
        Panel.fit(
            f"[bold cyan]{title}[/bold cyan]\n[white]{subtitle}[/white]",
            border_style="cyan",
        )
    )


def success(msg: str):
    console.print(f"[green]✔ {msg}[/green]")


def info(msg: str):
    console.print(f"[dim]• {msg}[/dim]")


def error(msg: str):
    console.print(f"[bold red]✖ {msg}[/bold red]")


def document_table(document: JobDocument) -> Table:
    table = Table(title=f"Job {document.id}", show_header=False)
    table.add_row("State", document.state.value)
    table.add_row("Progress", f"{document.progress}%")
    table.add_row("Error", document.error or "-")
    for name, value in sorted(document.fields.items()):
        table.add_row(name, json.dumps(value))
    return table


# -----------------------------
# Setup helpers
# -----------------------------

class InspectionJob(Job):
    """Placeholder job type for commands that only read documents."""

    def start(self) -> None:
        raise NotImplementedError("inspection jobs are never executed")


def load_config(
    redis_host: Optional[str], redis_port: Optional[int], namespace: Optional[str]
) -> Config:
    overrides: Dict[str, Any] = {}
    if redis_host is not None:
        overrides["redis_host"] = redis_host
    if redis_port is not None:
        overrides["redis_port"] = redis_port
    if namespace is not None:
        overrides["redis_namespace"] = namespace

    config = Config(**overrides)
    try:
        config.validate()
    except JobManagerError as e:
        error(f"Invalid configuration: {e}")
        raise typer.Exit(code=1)

    return config


def setup_logging(level: str):
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def import_job_class(path: str) -> Type[Job]:
    """Resolve 'package.module:ClassName' to a Job subclass."""
    module_name, _, class_name = path.partition(":")
    if not module_name or not class_name:
        raise typer.BadParameter(f"expected 'module:Class', got '{path}'")

    try:
        job_class = getattr(importlib.import_module(module_name), class_name)
    except (ImportError, AttributeError) as e:
        raise typer.BadParameter(f"cannot import '{path}': {e}")

    if not isinstance(job_class, type) or not issubclass(job_class, Job):
        raise typer.BadParameter(f"'{path}' is not a Job subclass")

    return job_class


def parse_fields(pairs: List[str]) -> Dict[str, Any]:
    """'key=value' pairs; values are JSON when they parse as JSON."""
    fields: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected key=value, got '{pair}'")
        try:
            fields[key] = json.loads(raw)
        except json.JSONDecodeError:
            fields[key] = raw
    return fields


def start_client(job_class: Type[Job], config: Config) -> Tuple[Manager, threading.Event]:
    shutdown = threading.Event()
    manager = new_manager(job_class, config)
    manager.start(shutdown)
    return manager, shutdown


# -----------------------------
# Shared options
# -----------------------------

RedisHostOption = typer.Option(None, "--redis-host", "-H", help="Redis host")
RedisPortOption = typer.Option(None, "--redis-port", "-p", help="Redis port")
NamespaceOption = typer.Option(None, "--namespace", "-n", help="Redis key namespace")


# -----------------------------
# Commands
# -----------------------------

@app.command()
def worker(
    job_class_path: str = typer.Argument(..., help="Job class as 'module:Class'"),
    redis_host: Optional[str] = RedisHostOption,
    redis_port: Optional[int] = RedisPortOption,
    namespace: Optional[str] = NamespaceOption,
):
    """
    Run a worker executing queued jobs until SIGINT/SIGTERM.
    """
    config = load_config(redis_host, redis_port, namespace)
    setup_logging(config.log_level)
    job_class = import_job_class(job_class_path)

    header(
        "JOB MANAGER WORKER",
        f"{config.worker_name} → {config.redis_host}:{config.redis_port}/{config.redis_namespace}",
    )

    shutdown = threading.Event()
    stopped = threading.Event()

    def handle_signal(signum, frame):
        info(f"Signal {signum} received. Stopping worker gracefully...")
        shutdown.set()

    # Hook signals for graceful shutdown
    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    manager = new_manager(job_class, config)
    manager.start_worker(shutdown, stopped.set)
    success(f"Worker started for {job_class.__name__}")

    stopped.wait()
    success("Worker stopped")


@app.command()
def enqueue(
    job_class_path: str = typer.Argument(..., help="Job class as 'module:Class'"),
    field: List[str] = typer.Option(
        [], "--field", "-f", help="Job field as key=value (repeatable)"
    ),
    wait: bool = typer.Option(False, "--wait", "-w", help="Wait for completion"),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Seconds to wait (default: config timeout)"
    ),
    redis_host: Optional[str] = RedisHostOption,
    redis_port: Optional[int] = RedisPortOption,
    namespace: Optional[str] = NamespaceOption,
):
    """
    Enqueue a job, optionally waiting until a worker finished it.
    """
    config = load_config(redis_host, redis_port, namespace)
    job_class = import_job_class(job_class_path)

    job = job_class()
    job.load(parse_fields(field))

    manager, shutdown = start_client(job_class, config)
    try:
        if wait:
            document = manager.add_job_and_wait(job, timeout)
            console.print(document_table(document))
        else:
            job_id = manager.add_job(job)
            success(f"Enqueued job {job_id}")
    except JobManagerError as e:
        error(str(e))
        raise typer.Exit(code=1)
    finally:
        shutdown.set()


@app.command()
def status(
    job_id: str = typer.Argument(..., help="Job id"),
    redis_host: Optional[str] = RedisHostOption,
    redis_port: Optional[int] = RedisPortOption,
    namespace: Optional[str] = NamespaceOption,
):
    """
    Show the stored document of a job.
    """
    config = load_config(redis_host, redis_port, namespace)

    manager, shutdown = start_client(InspectionJob, config)
    try:
        document = manager.get_job_document(job_id)
    except JobManagerError as e:
        error(str(e))
        raise typer.Exit(code=1)
    finally:
        shutdown.set()

    console.print(document_table(document))


@app.command()
def progress(
    job_id: str = typer.Argument(..., help="Job id"),
    follow: bool = typer.Option(
        False, "--follow", "-F", help="Keep reading until the job finished"
    ),
    poll: float = typer.Option(1.0, "--poll", help="Seconds to block per read"),
    redis_host: Optional[str] = RedisHostOption,
    redis_port: Optional[int] = RedisPortOption,
    namespace: Optional[str] = NamespaceOption,
):
    """
    Print the progress records of a job.
    """
    config = load_config(redis_host, redis_port, namespace)

    manager, shutdown = start_client(InspectionJob, config)
    try:
        artefact = None
        while True:
            state, value, cursor = manager.get_job_progress(
                job_id, artefact, poll if follow else None
            )

            if cursor == artefact:
                if follow:
                    continue
                break

            artefact = cursor
            console.print(f"[blue]{cursor}[/blue]  {state.value:<10} {value}%")

            if state in TERMINAL_STATES:
                break

        if artefact is None:
            info(f"No progress recorded for job {job_id}")
    except JobManagerError as e:
        error(str(e))
        raise typer.Exit(code=1)
    finally:
        shutdown.set()


def main():
    app()


if __name__ == "__main__":
    main()

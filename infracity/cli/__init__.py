"""
Command Line Interface for InfraCity.
"""

import asyncio
from typing import Optional

import typer
import uvicorn
from rich import print as rprint
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import get_settings
from ..db.base import get_session_local, init_database
from ..db.services import RepoService

app = typer.Typer(help="InfraCity - detect the technology stack of source repositories")
console = Console()

STATUS_STYLES = {
    "pending": "🟡 Pending",
    "running": "🔵 Running",
    "succeeded": "🟢 Succeeded",
    "failed": "🔴 Failed",
}


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host to bind the server to"),
    port: Optional[int] = typer.Option(None, help="Port to run the API server on"),
    reload: bool = typer.Option(False, help="Reload on code changes"),
):
    """Start the InfraCity API server."""
    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    rprint(Panel.fit(f"🏙️ Starting InfraCity API on http://{host}:{port}", style="bold blue"))
    uvicorn.run(
        "infracity.api:app",
        host=host,
        port=port,
        reload=reload or settings.debug,
        workers=1 if (reload or settings.debug) else settings.api_workers,
    )


@app.command()
def worker(
    poll_interval: Optional[float] = typer.Option(
        None, help="Seconds between poll cycles when idle (default: from config)"
    ),
):
    """Run the analysis worker until interrupted."""
    from ..worker.loop import run_worker

    rprint(Panel.fit("🛠️ Starting InfraCity worker", style="bold blue"))
    try:
        run_worker(poll_interval=poll_interval)
    except KeyboardInterrupt:
        console.print("\n🛑 Worker stopped")


@app.command("init-db")
def init_db():
    """Create all database tables."""
    asyncio.run(init_database())
    console.print("✅ Database initialized")


@app.command()
def register(
    url: str = typer.Argument(..., help="Clone URL of the repository"),
    owner: str = typer.Argument(..., help="Repository owner"),
    name: str = typer.Argument(..., help="Repository name"),
    branch: str = typer.Option("main", help="Branch to analyze"),
):
    """Register a repository and schedule an analysis job."""
    db = get_session_local()()
    try:
        registration = RepoService(db).register(url, owner, name, branch)
    except ValueError as e:
        console.print(f"❌ {e}")
        raise typer.Exit(code=1)
    finally:
        db.close()

    if registration.created_job:
        console.print(
            f"✅ Registered repo {registration.repo.id}, job {registration.job.id} queued"
        )
    else:
        console.print(
            f"ℹ️ Repo {registration.repo.id} already has job {registration.job.id} in progress"
        )


@app.command()
def repos():
    """List registered repositories and their latest analysis."""
    db = get_session_local()()
    try:
        rows = RepoService(db).list_repos_with_latest_job()
    finally:
        db.close()

    if not rows:
        console.print("No repositories registered")
        return

    table = Table(title="Repositories", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Repository")
    table.add_column("Branch")
    table.add_column("Latest job")
    table.add_column("Progress")
    table.add_column("Error")

    for row in rows:
        status = row["latest_job_status"]
        table.add_row(
            str(row["id"]),
            f"{row['owner']}/{row['name']}",
            row["default_branch"],
            STATUS_STYLES.get(status, "❓") if status else "-",
            f"{row['latest_job_progress']}%" if status else "-",
            (row["latest_job_error"] or "")[:60],
        )

    console.print(table)


if __name__ == "__main__":
    app()

"""Typer CLI for the ERP back-office."""

import asyncio

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(name="erp-backoffice", help="ERP back-office: identity, RBAC and approvals")
console = Console()


async def _with_session(work):
    from erp_backoffice.deps import get_db

    db = get_db()
    await db.init()
    await db.create_all()
    try:
        async with db.get_session() as session:
            return await work(session)
    finally:
        await db.close()


@app.command()
def serve(
    host: str = typer.Option(None, help="Bind host (default from ERP_HOST)"),
    port: int = typer.Option(None, help="Bind port (default from ERP_PORT)"),
):
    """Start the back-office API server."""
    import uvicorn
    from erp_backoffice.app import create_app
    from erp_backoffice.common.config import get_settings

    settings = get_settings()
    host = host or settings.host
    port = port or settings.port
    console.print(f"[bold green]Starting ERP back-office on {host}:{port}[/bold green]")
    uvicorn.run(create_app(), host=host, port=port)


@app.command()
def seed(
    admin_username: str = typer.Option("admin", help="Initial admin username"),
    admin_password: str = typer.Option(
        ..., prompt=True, hide_input=True, confirmation_prompt=True, help="Initial admin password"
    ),
    admin_email: str = typer.Option("", help="Initial admin email"),
):
    """Create the built-in menus, the Administrator role and the first admin user."""
    from erp_backoffice.rbac.bootstrap import seed as run_seed

    result = asyncio.run(
        _with_session(
            lambda session: run_seed(
                session,
                admin_username=admin_username,
                admin_password=admin_password,
                admin_email=admin_email,
            )
        )
    )
    console.print(f"[bold green]Seeded[/bold green] {result.menus_created} menu(s)")
    state = "created" if result.admin_created else "already present"
    console.print(f"  Admin user #{result.admin_user_id} {state}; role #{result.role_id}")


@app.command("create-user")
def create_user(
    username: str = typer.Argument(..., help="Login name"),
    name: str = typer.Option(..., help="Display name"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
    email: str = typer.Option("", help="Email address"),
):
    """Create an active user without roles."""
    from erp_backoffice.common.exceptions import BackofficeError
    from erp_backoffice.deps import get_user_service

    svc = get_user_service()
    try:
        user = asyncio.run(
            _with_session(
                lambda session: svc.create_user(
                    session, None, username=username, name=name, password=password, email=email
                )
            )
        )
    except BackofficeError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)
    console.print(f"[bold green]Created[/bold green] user #{user.id} {user.username}")


@app.command("sync-currencies")
def sync_currencies():
    """Import missing currencies from the external catalog."""
    from erp_backoffice.common.exceptions import BackofficeError
    from erp_backoffice.deps import get_currency_sync_service

    svc = get_currency_sync_service()
    try:
        result = asyncio.run(_with_session(lambda session: svc.sync(session, None)))
    except BackofficeError as e:
        console.print(f"[bold red]{e.code}[/bold red] — {e.message}")
        raise typer.Exit(1)

    console.print(f"Created: {result['created']}  Skipped: {result['skipped']}")
    if result["failed"]:
        table = Table("Code", "Error", title="Failed")
        for failure in result["failed"]:
            table.add_row(failure["code"], failure["error"])
        console.print(table)
        raise typer.Exit(2)


@app.command()
def health(
    url: str = typer.Option("http://localhost:5050", help="Server URL"),
):
    """Check back-office server health."""
    import httpx

    try:
        resp = httpx.get(f"{url}/health", timeout=5)
        data = resp.json()
        console.print(f"[bold green]{data['status']}[/bold green] — v{data['version']}")
    except (httpx.HTTPError, ValueError, KeyError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()

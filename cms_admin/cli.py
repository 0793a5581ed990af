"""CMS Admin CLI tool (cms-admin)."""

import asyncio

import typer

app = typer.Typer(name="cms-admin", help="CMS Admin CLI")
db_app = typer.Typer(help="Database management commands")
permissions_app = typer.Typer(help="Permission catalog commands")
audit_app = typer.Typer(help="Audit log maintenance")
app.add_typer(db_app, name="db")
app.add_typer(permissions_app, name="permissions")
app.add_typer(audit_app, name="audit")


@db_app.command("create")
def db_create():
    """Create all tables that don't exist yet."""
    import cms_admin.models  # noqa: F401
    from cms_admin.db.base import Base
    from cms_admin.db.session import engine

    Base.metadata.create_all(bind=engine)
    typer.echo("✅ Tables created (or already exist)")


async def _seed_all() -> None:
    from cms_admin.db.seeds.seed_permissions import sync_permissions
    from cms_admin.db.seeds.seed_roles import seed_roles
    from cms_admin.db.seeds.seed_super_admin import seed_super_admin
    from cms_admin.db.session import SessionLocal
    from cms_admin.identity.delivery import build_email_delivery
    from cms_admin.identity.factory import build_identity_provider

    delivery = build_email_delivery()
    identity = build_identity_provider(SessionLocal, delivery)
    db = SessionLocal()
    try:
        sync_permissions(db)
        seed_roles(db)
        await seed_super_admin(db, identity)
    finally:
        db.close()
        await identity.aclose()
        await delivery.aclose()


@db_app.command("seed")
def db_seed():
    """Sync permissions, then seed roles and the super admin."""
    asyncio.run(_seed_all())
    typer.echo("✅ All seeds applied")


@db_app.command("reset")
def db_reset():
    """Drop and recreate all tables (DANGER)."""
    confirm = typer.confirm("⚠️  This will DROP every table. Continue?")
    if not confirm:
        raise typer.Abort()
    import cms_admin.models  # noqa: F401
    from cms_admin.db.base import Base
    from cms_admin.db.session import engine

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    typer.echo("✅ Database reset")


@permissions_app.command("sync")
def permissions_sync():
    """Mirror the permission catalog into the database."""
    from cms_admin.db.seeds.seed_permissions import sync_permissions
    from cms_admin.db.session import SessionLocal

    db = SessionLocal()
    try:
        sync_permissions(db)
    finally:
        db.close()


@permissions_app.command("list")
def permissions_list():
    """Print the permission catalog by group."""
    from cms_admin.core.permissions import group_permissions

    for group, definitions in group_permissions().items():
        typer.echo(group)
        for p in definitions:
            typer.echo(f"  {p.key:<20} {p.label}")


@audit_app.command("cleanup")
def audit_cleanup(
    days: int = typer.Option(None, help="Days of history to keep (default AUDIT_RETENTION_DAYS)"),
    actor_email: str = typer.Option(None, help="Super admin performing the cleanup"),
):
    """Delete audit entries older than the retention window."""
    from cms_admin.core.config import settings
    from cms_admin.core.exceptions import CMSAdminError
    from cms_admin.db.session import SessionLocal
    from cms_admin.models.user import User
    from cms_admin.schemas.schemas import Actor
    from cms_admin.services.audit_service import audit_service

    days = days or settings.AUDIT_RETENTION_DAYS
    email = (actor_email or settings.SUPER_ADMIN_EMAIL).strip().lower()
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if user is None:
            typer.echo(f"❌ No admin profile for {email}", err=True)
            raise typer.Exit(code=1)
        try:
            deleted = audit_service.delete_old_logs(db, Actor.model_validate(user), days)
        except CMSAdminError as e:
            typer.echo(f"❌ {e.message}", err=True)
            raise typer.Exit(code=1)
    finally:
        db.close()
    typer.echo(f"✅ Deleted {deleted} audit log(s) older than {days} days")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(True, help="Auto-reload"),
):
    """Start the FastAPI development server."""
    import uvicorn
    uvicorn.run("cms_admin.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()

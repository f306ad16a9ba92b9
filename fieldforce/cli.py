"""FieldForce CLI tool (fieldforce)."""

import typer

app = typer.Typer(name="fieldforce", help="FieldForce authorization CLI")
db_app = typer.Typer(help="Database management commands")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init():
    """Create all tables."""
    from fieldforce.core.config import settings
    from fieldforce.db.session import Database

    database = Database.from_settings(settings)
    try:
        database.create_all()
    finally:
        database.dispose()
    typer.echo("✅ Tables created (or already exist)")


@db_app.command("seed")
def db_seed():
    """Seed permissions, global roles, the default entity, and the super admin."""
    from fieldforce.core.config import settings
    from fieldforce.db.session import Database
    from fieldforce.db.seeds.seed_roles import seed_roles
    from fieldforce.db.seeds.seed_super_admin import seed_super_admin

    database = Database.from_settings(settings)
    db = database.session()
    try:
        seed_roles(db)
        seed_super_admin(db, settings)
    finally:
        db.close()
        database.dispose()
    typer.echo("✅ All seeds applied")


@app.command("whoami")
def whoami(token: str = typer.Argument(..., help="Access token to inspect")):
    """Verify an access token and print its claims."""
    from fieldforce.core.config import settings
    from fieldforce.core.exceptions import FieldForceError
    from fieldforce.core.security import TokenService

    try:
        claims = TokenService(settings).verify(token)
    except FieldForceError as e:
        typer.echo(f"❌ {e.code}: {e.message}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"user:        {claims.user_id} <{claims.email}>")
    typer.echo(f"role:        {claims.role_name} (level {claims.role_level})")
    typer.echo(f"expires:     {claims.expires_at.isoformat()}")
    for name in sorted(claims.permissions):
        typer.echo(f"  - {name}")


@app.command("downline")
def downline(email: str = typer.Argument(..., help="Email of the manager")):
    """Print everyone in a user's downline."""
    from fieldforce.core.config import settings
    from fieldforce.db.session import Database
    from fieldforce.models.user import User
    from fieldforce.services.hierarchy_service import HierarchyResolver, SqlSubordinateLookup

    database = Database.from_settings(settings)
    db = database.session()
    try:
        user = db.query(User).filter(User.email == email).first()
        if not user:
            typer.echo(f"❌ No user with email {email}", err=True)
            raise typer.Exit(code=1)
        ids = HierarchyResolver(SqlSubordinateLookup(db)).downline(user.id)
        members = db.query(User).filter(User.id.in_(ids)).order_by(User.email).all()
        for member in members:
            typer.echo(f"  [{member.role.name}] {member.email}")
    finally:
        db.close()
        database.dispose()


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the FastAPI server."""
    import uvicorn
    uvicorn.run("fieldforce.main:create_app", factory=True, host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()

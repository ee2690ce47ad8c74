import os
from decimal import Decimal
import click
from flask import current_app
from flask.cli import with_appcontext
from flask_migrate import upgrade as alembic_upgrade, stamp as alembic_stamp, migrate as alembic_migrate


def _assert_safe_for_upgrade():
    # Prevent accidental prod upgrades unless explicitly allowed
    env = (current_app.config.get("ENV") or "").lower()
    app_env = (os.getenv("APP_ENV") or "").lower()
    if app_env == "production" or env == "production":
        if (os.getenv("ALLOW_DB_MIGRATIONS") or "").lower() not in ("1", "true", "yes"):
            raise click.ClickException("Refusing to run DB migration in production without ALLOW_DB_MIGRATIONS=true")


@click.command("db-migrate-safe")
@click.option("-m", "--message", default="auto migration", help="Migration message")
@with_appcontext
def db_migrate_safe(message):
    """Generate a new migration script from current models."""
    alembic_migrate(message=message)
    click.echo("Migration script generated.")


@click.command("db-upgrade-safe")
@with_appcontext
def db_upgrade_safe():
    """Apply migrations to the configured database."""
    _assert_safe_for_upgrade()
    alembic_upgrade()
    click.echo("Database upgraded.")


@click.command("db-stamp-safe")
@click.option("--revision", default="head", help="Revision to stamp, default 'head'")
@with_appcontext
def db_stamp_safe(revision):
    """Mark the database at a given revision without running migrations."""
    _assert_safe_for_upgrade()
    alembic_stamp(revision)
    click.echo(f"Database stamped at {revision}.")


SAMPLE_PRODUCTS = [
    {"name": "Canvas Tote Bag", "price": "24.00", "original_price": "30.00", "category": "Accessories", "stock": 40, "tags": ["bags", "cotton"]},
    {"name": "Ceramic Pour-Over Set", "price": "38.50", "category": "Kitchen", "stock": 25, "tags": ["coffee"]},
    {"name": "Wool Throw Blanket", "price": "64.00", "original_price": "80.00", "category": "Home", "stock": 12, "tags": ["wool", "bedroom"]},
    {"name": "Linen Napkins (4)", "price": "18.00", "category": "Kitchen", "stock": 60, "tags": ["linen", "table"]},
]


@click.command("seed-products")
@with_appcontext
def seed_products():
    """Insert a few sample products into an empty catalog."""
    from models import db
    from models.product import Product

    if db.session.execute(db.select(Product.id).limit(1)).first():
        click.echo("Catalog already has products, nothing to do.")
        return
    for row in SAMPLE_PRODUCTS:
        db.session.add(Product(
            name=row["name"],
            price=Decimal(row["price"]),
            original_price=Decimal(row["original_price"]) if row.get("original_price") else None,
            category=row["category"],
            stock=row["stock"],
            tags=row["tags"],
        ))
    db.session.commit()
    click.echo(f"Seeded {len(SAMPLE_PRODUCTS)} products.")


@click.command("create-admin")
@click.argument("email")
@click.option("--name", default=None, help="Display name")
@with_appcontext
def create_admin(email, name):
    """Create an admin user, or promote an existing one."""
    from models import db
    from models.user import UserProfile

    user = db.session.execute(
        db.select(UserProfile).where(UserProfile.email == email)
    ).scalar_one_or_none()
    if user is None:
        user = UserProfile(email=email, name=name, role="admin")
        db.session.add(user)
    else:
        user.role = "admin"
    db.session.commit()
    click.echo(f"{email} is an admin (id {user.id}).")


def register_cli(app):
    app.cli.add_command(db_migrate_safe)
    app.cli.add_command(db_upgrade_safe)
    app.cli.add_command(db_stamp_safe)
    app.cli.add_command(seed_products)
    app.cli.add_command(create_admin)


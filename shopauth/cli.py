"""shopauth CLI tool."""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager

import click

from shopauth.auth.admin import AdminService
from shopauth.auth.models import Account, Roles, parse_email
from shopauth.auth.passwords import PasswordHasher
from shopauth.core.client import S3ClientManager
from shopauth.core.exceptions import DuplicateAccountError, ShopAuthError
from shopauth.core.settings import Settings, get_settings
from shopauth.store.s3 import S3AccountStore


@asynccontextmanager
async def s3_store(settings: Settings):
    """Open the S3 credential store configured by ``settings``."""
    manager = S3ClientManager(settings)
    async with manager.get_async_client() as s3_client:
        await manager.ensure_bucket_exists(s3_client)
        yield S3AccountStore(s3_client, manager.bucket_name, settings.s3_base_path)


def _settings(ctx: click.Context) -> Settings:
    settings = ctx.obj.get("settings")
    if settings is None:
        try:
            settings = get_settings()
        except ShopAuthError as e:
            raise click.ClickException(str(e)) from e
        ctx.obj["settings"] = settings
    return settings


def _run(ctx: click.Context, action):
    """Run ``action(store)`` against the configured store.

    shopauth errors become a one-line CLI error with exit status 1.
    """
    settings = _settings(ctx)
    store_factory = ctx.obj.get("store_factory", s3_store)

    async def _main():
        async with store_factory(settings) as store:
            return await action(store)

    try:
        return asyncio.run(_main())
    except ShopAuthError as e:
        raise click.ClickException(e.message) from e


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, verbose):
    """shopauth CLI - Manage shop accounts."""
    ctx.ensure_object(dict)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command("create-admin")
@click.argument("email")
@click.password_option(help="Password for the new administrator")
@click.pass_context
def create_admin(ctx, email, password):
    """Create a confirmed administrator account."""
    try:
        email = parse_email(email)
    except ShopAuthError as e:
        raise click.ClickException(e.message) from e
    is_valid, message = PasswordHasher.check_strength(password)
    if not is_valid:
        raise click.ClickException(message)
    hasher = PasswordHasher(rounds=_settings(ctx).bcrypt_rounds)

    async def _create(store):
        account = Account(
            email=email,
            password_hash=hasher.hash(password),
            role=Roles.ADMIN,
            email_confirmed=True,
        )
        try:
            return await store.create(account)
        except DuplicateAccountError as e:
            raise click.ClickException(f"An account for {email} already exists") from e

    account = _run(ctx, _create)
    click.echo(f"✅ Created admin {account.email} ({account.id})")


@cli.command("list-users")
@click.pass_context
def list_users(ctx):
    """List all accounts."""

    async def _list(store):
        return await AdminService(store).list_accounts()

    accounts = _run(ctx, _list)
    if not accounts:
        click.echo("No accounts found")
        return

    for account in accounts:
        flags = []
        if account.is_banned:
            flags.append("banned")
        if not account.email_confirmed:
            flags.append("unconfirmed")
        if account.two_factor_enabled:
            flags.append("2fa")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        click.echo(f"{account.id}  {account.email}  {account.role}{suffix}")


@cli.command()
@click.argument("account_id", type=click.UUID)
@click.pass_context
def ban(ctx, account_id: uuid.UUID):
    """Ban an account and end its session."""

    async def _ban(store):
        return await AdminService(store).ban(account_id)

    account = _run(ctx, _ban)
    click.echo(f"✅ Banned {account.email}")


@cli.command()
@click.argument("account_id", type=click.UUID)
@click.pass_context
def unban(ctx, account_id: uuid.UUID):
    """Lift a ban."""

    async def _unban(store):
        return await AdminService(store).unban(account_id)

    account = _run(ctx, _unban)
    click.echo(f"✅ Unbanned {account.email}")


@cli.command("set-role")
@click.argument("account_id", type=click.UUID)
@click.argument("role", type=click.Choice(sorted(Roles.ALL)))
@click.pass_context
def set_role(ctx, account_id: uuid.UUID, role: str):
    """Change an account's role."""

    async def _set_role(store):
        return await AdminService(store).change_role(account_id, role)

    account = _run(ctx, _set_role)
    click.echo(f"✅ {account.email} is now {account.role}")


@cli.command("hash-password")
@click.password_option(confirmation_prompt=False)
@click.option("--rounds", type=int, default=12, show_default=True, help="bcrypt cost")
def hash_password(password, rounds):
    """Print the bcrypt hash of a password."""
    try:
        click.echo(PasswordHasher(rounds=rounds).hash(password))
    except ShopAuthError as e:
        raise click.ClickException(e.message) from e


@cli.command("check-password")
@click.argument("password")
def check_password(password):
    """Check a password against the strength rules."""
    is_valid, message = PasswordHasher.check_strength(password)
    if not is_valid:
        raise click.ClickException(message)
    click.echo(f"✅ {message}")


@cli.command()
def version():
    """Show shopauth version."""
    from shopauth import __version__

    click.echo(f"shopauth version: {__version__}")


if __name__ == "__main__":
    cli()

"""
adapters.cli.main - CLI adapter for the OrderTaker bakery tools.

Uses the same ServiceFactory, SessionController and repositories as any
other front end, so sign-in, optimistic writes, import and export behave
identically everywhere.

Commands
--------
  register        Create an account (email, password, full name)
  login           Sign in and save credentials locally (~/.ordertaker/session.json)
  sso             Sign in with a federated id token
  logout          Sign out and clear stored credentials
  whoami          Show the signed-in account's profile
  reset-password  Request a reset token, or apply one with --token
  verify-email    Confirm an email verification token
  orders ...      list / add / edit / complete / reopen / delete
  menu ...        list / add / edit / delete
  export          Write orders or menu to a .tsv file (or stdout)
  import          Load orders or menu from a .tsv/.csv file
  summary         Items to bake for one pickup date
  report          Sales report

Usage
-----
  python run_cli.py login
  python run_cli.py orders add --item "Chocolate Cake" --customer Alice --date 2026-01-16 --time 14:00
  python run_cli.py export orders
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from typing import AsyncIterator, Optional

# ── Ensure src/ is on the path when run as a script ──
_SRC = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(_SRC))

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from adapters.cli.session import Session, clear_session, load_session, save_session
from application.codec.formats import (
    canonical_date_or_raw,
    canonical_time_or_raw,
    display_date_or_raw,
    display_time_or_raw,
    format_currency,
    parse_canonical_date,
    parse_canonical_time,
)
from application.dto import SignInRequest, SignUpRequest
from application.services.authentication import auth_error_message
from application.services.session import SessionController
from domain.entities import MenuItem, Order
from domain.exceptions import AuthenticationError, DomainError, ExportEmptyError
from domain.models import MenuCategory, OrderStatus, OrderView
from factory import ServiceFactory
from infrastructure.config import Settings

__version__ = "1.0.0"

console = Console()
app = typer.Typer(
    help="OrderTaker bakery CLI",
    add_completion=False,
    no_args_is_help=True,
)
orders_app = typer.Typer(help="Manage cake orders.", no_args_is_help=True)
menu_app = typer.Typer(help="Manage the menu catalog.", no_args_is_help=True)
app.add_typer(orders_app, name="orders")
app.add_typer(menu_app, name="menu")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------

async def _make_factory() -> ServiceFactory:
    factory = ServiceFactory(Settings.from_env())
    await factory.initialize()
    stored = load_session()
    if stored is not None:
        factory.auth_provider.restore(stored.access_token)
    return factory


@asynccontextmanager
async def _signed_in() -> AsyncIterator[tuple[ServiceFactory, SessionController]]:
    """Open a session for the stored credentials and wait for first snapshots.

    On exit, waits for outstanding writes and the snapshots they trigger.
    """
    factory = await _make_factory()
    controller = factory.create_session_controller()
    controller.start()
    if not controller.state.is_signed_in:
        console.print(
            "[bold red]Not signed in.[/bold red] "
            "Run [bold]login[/bold] (or [bold]register[/bold]) first."
        )
        raise typer.Exit(code=1)
    await factory.store.drain()
    try:
        yield factory, controller
    finally:
        await controller.orders.wait_for_writes()
        await controller.menu.wait_for_writes()
        await factory.store.drain()
        controller.stop()


def _remember(factory: ServiceFactory, email: str) -> None:
    provider = factory.auth_provider
    uid = provider.current_user_id()
    if uid and provider.access_token:
        save_session(Session(user_id=uid, access_token=provider.access_token, email=email))


def _auth_failed(exc: AuthenticationError) -> None:
    console.print(f"[bold red]{auth_error_message(exc)}[/bold red]")
    raise typer.Exit(code=1)


def _canonical_date(value: str) -> str:
    canonical = canonical_date_or_raw(value)
    if parse_canonical_date(canonical) is None:
        console.print(f"[bold red]Unrecognised date:[/bold red] {value}")
        raise typer.Exit(code=2)
    return canonical


def _canonical_time(value: str) -> str:
    canonical = canonical_time_or_raw(value)
    if parse_canonical_time(canonical) is None:
        console.print(f"[bold red]Unrecognised time:[/bold red] {value}")
        raise typer.Exit(code=2)
    return canonical


def _category(value: Optional[str]) -> Optional[MenuCategory]:
    if value is None:
        return None
    for category in MenuCategory:
        if category.value.lower() == value.strip().lower():
            return category
    console.print(f"[bold red]Unknown category:[/bold red] {value} (Cake, Dessert, Other)")
    raise typer.Exit(code=2)


def _require_order(controller: SessionController, order_id: str) -> Order:
    order = controller.orders.get(order_id)
    if order is None:
        console.print(f"[bold red]No order with id {order_id}.[/bold red]")
        raise typer.Exit(code=1)
    return order


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except DomainError as exc:
        console.print(f"[bold red]{exc}[/bold red]")
        raise typer.Exit(code=1)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"ordertaker v{__version__}")
        raise typer.Exit()


# ---------------------------------------------------------------------------
# Commands: Auth
# ---------------------------------------------------------------------------

@app.command()
def register() -> None:
    """Create a new account."""
    console.print(Panel("[bold]Create Account[/bold]", border_style="blue"))
    full_name = Prompt.ask("[bold]Full name[/bold]")
    email     = Prompt.ask("[bold]Email address[/bold]")
    password  = Prompt.ask("[bold]Password[/bold]", password=True)

    async def _run_register() -> None:
        factory  = await _make_factory()
        auth_svc = factory.create_authentication_service()
        try:
            user = await auth_svc.sign_up(SignUpRequest(
                email=email, password=password, full_name=full_name,
            ))
        except AuthenticationError as exc:
            _auth_failed(exc)
        _remember(factory, user.email)
        await factory.store.drain()
        if not user.email_verified:
            console.print(Panel(
                "[bold yellow]Verification email sent![/bold yellow] "
                "Run [bold]verify-email TOKEN[/bold] with the token from the log.",
                border_style="yellow",
            ))
            return
        console.print(Panel(
            f"[bold green]Account created and signed in![/bold green]\n"
            f"Welcome, [bold]{full_name}[/bold].",
            border_style="green",
        ))

    _run(_run_register())


@app.command()
def login() -> None:
    """Sign in with email and password."""
    email    = Prompt.ask("[bold]Email address[/bold]")
    password = Prompt.ask("[bold]Password[/bold]", password=True)

    async def _run_login() -> None:
        factory  = await _make_factory()
        auth_svc = factory.create_authentication_service()
        try:
            user = await auth_svc.sign_in(SignInRequest(email=email, password=password))
        except AuthenticationError as exc:
            _auth_failed(exc)
        _remember(factory, user.email)
        console.print(Panel(
            f"[bold green]Signed in![/bold green] Welcome back, [bold]{user.display_name or user.email}[/bold].",
            border_style="green",
        ))

    _run(_run_login())


@app.command()
def sso(
    provider: str = typer.Argument(..., help="Identity provider label, e.g. google."),
    id_token: str = typer.Argument(..., help="Signed id token from the provider."),
) -> None:
    """Sign in with a federated identity token."""
    async def _run_sso() -> None:
        factory  = await _make_factory()
        auth_svc = factory.create_authentication_service()
        try:
            user = await auth_svc.sign_in_with_federated_credential(provider, id_token)
        except AuthenticationError as exc:
            _auth_failed(exc)
        _remember(factory, user.email)
        await factory.store.drain()
        console.print(f"[green]Signed in as[/green] [bold]{user.email}[/bold] via {provider}.")

    _run(_run_sso())


@app.command()
def logout() -> None:
    """Sign out and clear stored credentials."""
    session = load_session()
    if session is None:
        console.print("[dim]Not currently signed in.[/dim]")
        return
    if Confirm.ask(f"Sign out [bold]{session.email or session.user_id}[/bold]?"):
        async def _run_logout() -> None:
            factory = await _make_factory()
            await factory.auth_provider.sign_out()

        _run(_run_logout())
        clear_session()
        console.print("[green]Signed out.[/green]")


@app.command()
def whoami() -> None:
    """Show the signed-in account."""
    async def _run_whoami() -> None:
        async with _signed_in() as (_, controller):
            profile = controller.profile
            t = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
            t.add_column("Field", style="bold")
            t.add_column("Value")
            t.add_row("User id", controller.state.user_id or "")
            if profile is not None:
                t.add_row("Name", profile.full_name)
                t.add_row("Email", profile.email)
                t.add_row("Member since", profile.created_at)
            t.add_row("Orders", str(len(controller.orders.items)))
            t.add_row("Menu items", str(len(controller.menu.items)))
            console.print(Panel(t, title="Your Account", border_style="blue"))

    _run(_run_whoami())


@app.command("reset-password")
def reset_password(
    email: str = typer.Argument("", help="Account email to send a reset token to."),
    token: Optional[str] = typer.Option(None, "--token", "-t", help="Apply a reset token."),
) -> None:
    """Request a password reset, or set a new password with --token."""
    async def _run_reset() -> None:
        factory = await _make_factory()
        try:
            if token:
                new_password = Prompt.ask("[bold]New password[/bold]", password=True)
                await factory.auth_provider.confirm_password_reset(token, new_password)
                console.print("[green]Password updated. You can sign in now.[/green]")
            else:
                await factory.create_authentication_service().send_password_reset(email)
                console.print("[green]If that account exists, a reset token was sent.[/green]")
        except AuthenticationError as exc:
            _auth_failed(exc)

    _run(_run_reset())


@app.command("verify-email")
def verify_email(token: str = typer.Argument(..., help="Verification token.")) -> None:
    """Confirm an email address."""
    async def _run_verify() -> None:
        factory = await _make_factory()
        try:
            await factory.auth_provider.confirm_email_verification(token)
        except AuthenticationError as exc:
            _auth_failed(exc)
        console.print("[green]Email verified![/green] Run [bold]login[/bold] to continue.")

    _run(_run_verify())


# ---------------------------------------------------------------------------
# Commands: Orders
# ---------------------------------------------------------------------------

def _orders_table(orders: list[Order], title: str) -> Table:
    t = Table(title=title, box=box.SIMPLE_HEAVY)
    for column in ("ID", "Pickup", "Item", "Qty", "Total", "Customer", "Status", "Source"):
        t.add_column(column)
    for order in orders:
        t.add_row(
            (order.id or "(pending)")[:8],
            f"{display_date_or_raw(order.pickup_date)} {display_time_or_raw(order.pickup_time)}",
            order.item_name,
            str(order.quantity),
            format_currency(order.total),
            order.customer_name,
            order.status.capitalize(),
            order.source,
        )
    return t


def _resolve_order_id(controller: SessionController, prefix: str) -> str:
    matches = [o.id for o in controller.orders.items if o.id and o.id.startswith(prefix)]
    if len(matches) != 1:
        console.print(f"[bold red]Order id {prefix!r} matches {len(matches)} orders.[/bold red]")
        raise typer.Exit(code=1)
    return matches[0]


@orders_app.command("list")
def orders_list(
    view: OrderView = typer.Option(OrderView.ALL, "--view", help="today, pending, completed or all"),
) -> None:
    """List orders by pickup date and time."""
    async def _run_list() -> None:
        async with _signed_in() as (_, controller):
            orders = _reports(controller).orders_for(view)
            if not orders:
                console.print("[dim]No orders.[/dim]")
                return
            console.print(_orders_table(orders, f"{len(orders)} ORDERS"))

    _run(_run_list())


@orders_app.command("add")
def orders_add(
    item: str = typer.Option(..., "--item", help="Item name (matches the menu)."),
    customer: str = typer.Option(..., "--customer"),
    pickup_date: str = typer.Option(..., "--date", help="YYYY-MM-DD or 'Friday, January 16, 2026'."),
    pickup_time: str = typer.Option(..., "--time", help="HH:MM or '2:00 PM'."),
    quantity: int = typer.Option(1, "--quantity", "-q", min=1),
    total: Optional[float] = typer.Option(None, "--total", min=0.0, help="Defaults to menu price x quantity."),
    notes: str = typer.Option("", "--notes"),
    source: str = typer.Option("", "--source", help="e.g. Instagram, FB Page, Marketplace."),
) -> None:
    """Record a new pending order."""
    canonical_date = _canonical_date(pickup_date)
    canonical_time = _canonical_time(pickup_time)

    async def _run_add() -> None:
        async with _signed_in() as (_, controller):
            amount = total
            if amount is None:
                menu_item = controller.menu.find_by_name(item)
                amount = menu_item.base_price * quantity if menu_item else 0.0
            order = Order.create(
                item_name=item, customer_name=customer, quantity=quantity,
                total=amount, notes=notes, source=source,
                pickup_date=canonical_date, pickup_time=canonical_time,
            )
            order_id = await controller.orders.add(order)
            console.print(f"[green]Order saved[/green] ({order_id[:8]}).")

    _run(_run_add())


@orders_app.command("edit")
def orders_edit(
    order_id: str = typer.Argument(..., help="Order id (or unique prefix)."),
    item: Optional[str] = typer.Option(None, "--item"),
    customer: Optional[str] = typer.Option(None, "--customer"),
    pickup_date: Optional[str] = typer.Option(None, "--date"),
    pickup_time: Optional[str] = typer.Option(None, "--time"),
    quantity: Optional[int] = typer.Option(None, "--quantity", "-q", min=1),
    total: Optional[float] = typer.Option(None, "--total", min=0.0),
    notes: Optional[str] = typer.Option(None, "--notes"),
    source: Optional[str] = typer.Option(None, "--source"),
) -> None:
    """Change fields of an existing order."""
    changes = {
        "item_name": item, "customer_name": customer, "quantity": quantity,
        "total": total, "notes": notes, "source": source,
        "pickup_date": _canonical_date(pickup_date) if pickup_date else None,
        "pickup_time": _canonical_time(pickup_time) if pickup_time else None,
    }
    changes = {key: value for key, value in changes.items() if value is not None}

    async def _run_edit() -> None:
        async with _signed_in() as (_, controller):
            current = _require_order(controller, _resolve_order_id(controller, order_id))
            updated = Order(**{**current.__dict__, **changes})
            await controller.orders.update(updated)
            console.print("[green]Order updated.[/green]")

    _run(_run_edit())


def _set_status(order_id: str, status: OrderStatus) -> None:
    async def _run_status() -> None:
        async with _signed_in() as (_, controller):
            full_id = _resolve_order_id(controller, order_id)
            await controller.orders.update_status(full_id, status)
            console.print(f"[green]Order marked {status.value}.[/green]")

    _run(_run_status())


@orders_app.command("complete")
def orders_complete(order_id: str = typer.Argument(...)) -> None:
    """Mark an order completed."""
    _set_status(order_id, OrderStatus.COMPLETED)


@orders_app.command("reopen")
def orders_reopen(order_id: str = typer.Argument(...)) -> None:
    """Move a completed order back to pending."""
    _set_status(order_id, OrderStatus.PENDING)


@orders_app.command("delete")
def orders_delete(order_id: str = typer.Argument(...)) -> None:
    """Delete an order."""
    async def _run_delete() -> None:
        async with _signed_in() as (_, controller):
            full_id = _resolve_order_id(controller, order_id)
            if Confirm.ask(f"Delete order [bold]{full_id[:8]}[/bold]?"):
                await controller.orders.delete(full_id)
                console.print("[green]Order deleted.[/green]")

    _run(_run_delete())


# ---------------------------------------------------------------------------
# Commands: Menu
# ---------------------------------------------------------------------------

@menu_app.command("list")
def menu_list() -> None:
    """List menu items by name."""
    async def _run_list() -> None:
        async with _signed_in() as (_, controller):
            t = Table(title="MENU", box=box.SIMPLE_HEAVY)
            for column in ("ID", "Name", "Base price", "Category"):
                t.add_column(column)
            for menu_item in controller.menu.sorted_by_name():
                category = menu_item.category.value if menu_item.category else (
                    f"[dim]{controller.menu.category_of(menu_item.name).value}[/dim]"
                )
                t.add_row(
                    (menu_item.id or "(pending)")[:8], menu_item.name,
                    format_currency(menu_item.base_price), category,
                )
            console.print(t)

    _run(_run_list())


@menu_app.command("add")
def menu_add(
    name: str = typer.Argument(...),
    price: float = typer.Argument(..., min=0.0),
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Cake, Dessert or Other."),
) -> None:
    """Add an item to the menu."""
    chosen = _category(category)

    async def _run_add() -> None:
        async with _signed_in() as (_, controller):
            await controller.menu.add(MenuItem(name=name, base_price=price, category=chosen))
            console.print(f"[green]Added[/green] {name}.")

    _run(_run_add())


@menu_app.command("edit")
def menu_edit(
    item_id: str = typer.Argument(...),
    name: Optional[str] = typer.Option(None, "--name"),
    price: Optional[float] = typer.Option(None, "--price", min=0.0),
    category: Optional[str] = typer.Option(None, "--category", "-c"),
) -> None:
    """Change a menu item."""
    chosen = _category(category)

    async def _run_edit() -> None:
        async with _signed_in() as (_, controller):
            matches = [m for m in controller.menu.items if m.id and m.id.startswith(item_id)]
            if len(matches) != 1:
                console.print(f"[bold red]Menu id {item_id!r} matches {len(matches)} items.[/bold red]")
                raise typer.Exit(code=1)
            current = matches[0]
            await controller.menu.update(MenuItem(
                id=current.id,
                name=name if name is not None else current.name,
                base_price=price if price is not None else current.base_price,
                category=chosen if chosen is not None else current.category,
            ))
            console.print("[green]Menu item updated.[/green]")

    _run(_run_edit())


@menu_app.command("delete")
def menu_delete(item_id: str = typer.Argument(...)) -> None:
    """Remove a menu item."""
    async def _run_delete() -> None:
        async with _signed_in() as (_, controller):
            matches = [m.id for m in controller.menu.items if m.id and m.id.startswith(item_id)]
            if len(matches) != 1:
                console.print(f"[bold red]Menu id {item_id!r} matches {len(matches)} items.[/bold red]")
                raise typer.Exit(code=1)
            await controller.menu.delete(matches[0])
            console.print("[green]Menu item deleted.[/green]")

    _run(_run_delete())


# ---------------------------------------------------------------------------
# Commands: Import / export
# ---------------------------------------------------------------------------

@app.command()
def export(
    kind: str = typer.Argument("orders", help="orders or menu"),
    stdout: bool = typer.Option(False, "--stdout", help="Print instead of writing a file."),
    directory: Optional[Path] = typer.Option(None, "--dir", help="Output directory."),
) -> None:
    """Export orders or the menu as tab-separated text."""
    if kind not in ("orders", "menu"):
        console.print("[bold red]Export kind must be 'orders' or 'menu'.[/bold red]")
        raise typer.Exit(code=2)

    async def _run_export() -> None:
        async with _signed_in() as (factory, controller):
            transfer = factory.create_transfer_service(controller)
            text = transfer.export_orders() if kind == "orders" else transfer.export_menu()
            if stdout:
                sys.stdout.write(text)
                return
            try:
                written = transfer.write_export(text, kind, directory or factory.config.export_dir)
            except ExportEmptyError as exc:
                console.print(f"[bold yellow]{exc}[/bold yellow]")
                raise typer.Exit(code=1)
            console.print(f"[green]Exported {written.rows} rows to[/green] {written.path}")

    _run(_run_export())


@app.command("import")
def import_(
    kind: str = typer.Argument(..., help="orders or menu"),
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
) -> None:
    """Import orders or menu items from tab- or comma-separated text."""
    if kind not in ("orders", "menu"):
        console.print("[bold red]Import kind must be 'orders' or 'menu'.[/bold red]")
        raise typer.Exit(code=2)

    async def _run_import() -> None:
        async with _signed_in() as (factory, controller):
            transfer = factory.create_transfer_service(controller)
            text = transfer.read_import_file(path)
            if kind == "orders":
                result = await transfer.import_orders(text)
            else:
                result = await transfer.import_menu(text)
            style = "green" if result.errors == 0 else "yellow"
            console.print(f"[{style}]{result.summary}[/{style}]")

    _run(_run_import())


# ---------------------------------------------------------------------------
# Commands: Reports
# ---------------------------------------------------------------------------

def _reports(controller: SessionController):
    return ServiceFactory.create_report_service(controller)


@app.command()
def summary(
    pickup_date: Optional[str] = typer.Option(None, "--date", help="Defaults to today."),
) -> None:
    """Total items to bake for one pickup date."""
    day = date.today()
    if pickup_date:
        day = parse_canonical_date(_canonical_date(pickup_date))

    async def _run_summary() -> None:
        async with _signed_in() as (_, controller):
            totals = _reports(controller).daily_summary(day)
            title = f"TOTAL ITEMS TO BAKE: {display_date_or_raw(day.isoformat())}"
            if not totals:
                console.print(Panel("[dim]No orders for this date[/dim]", title=title))
                return
            t = Table(box=box.SIMPLE, show_header=False)
            t.add_column("Item")
            t.add_column("Qty", justify="right", style="bold")
            for entry in totals:
                t.add_row(entry.name, str(entry.quantity))
            console.print(Panel(t, title=title, border_style="magenta"))

    _run(_run_summary())


@app.command()
def report() -> None:
    """Sales report: revenue, pipeline, best sellers, sources."""
    async def _run_report() -> None:
        async with _signed_in() as (_, controller):
            stats = _reports(controller).sales_report()
            kpis = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
            kpis.add_column("Metric", style="bold")
            kpis.add_column("Value", justify="right")
            kpis.add_row("TOTAL REVENUE", f"${stats.revenue:.0f}")
            kpis.add_row("PIPELINE", f"${stats.pipeline:.0f}")
            kpis.add_row("TOTAL ORDERS", str(stats.total_orders))
            kpis.add_row("AVG. ORDER", f"${stats.average_order_value:.0f}")
            console.print(Panel(kpis, title="Sales Report", border_style="green"))

            for title, rows in (
                ("CAKES", stats.cakes),
                ("DESSERTS", stats.desserts),
                ("OTHER ITEMS", stats.other),
                ("SOURCES", stats.sources),
            ):
                if not rows:
                    continue
                t = Table(title=title, box=box.SIMPLE, show_header=False)
                t.add_column("Name")
                t.add_column("Count", justify="right")
                for entry in rows:
                    t.add_row(entry.name or "[dim](none)[/dim]", str(entry.quantity))
                console.print(t)

    _run(_run_report())


# ---------------------------------------------------------------------------
# Global options
# ---------------------------------------------------------------------------

@app.callback()
def _callback(
    version: bool = typer.Option(
        False, "--version", "-v",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """OrderTaker bakery CLI"""
    logging.basicConfig(
        level=Settings.from_env().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()

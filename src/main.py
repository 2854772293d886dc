"""CLI entry point for the Ace Fixings storefront.

Provides a command-line interface to:
- Browse collections and products with VAT-aware prices
- Manage the Shopify cart and open checkout
- Log in with a Shopify customer account (OAuth + PKCE)
- View orders, reorder and print invoices
- Register, and request VAT exemption through the proxy service
- Run the proxy service itself
"""

import argparse
import sys
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from src.account import AccountError, RegistrationForm
from src.app import StorefrontApp
from src.auth import AuthError
from src.config import get_settings
from src.filters import ProductFilter, all_vendors, filter_collections
from src.logging_config import get_logger, setup_logging
from src.orders import NothingToReorderError, invoice_text, line_items
from src.pricing import BulkPricing, VatMode, format_datetime, format_gbp, format_money_v2
from src.shopify import ShopifyClientError
from src.transport import HttpTransportError

logger = get_logger(__name__)

# Errors shown to the user as a one-line message rather than a traceback
USER_ERRORS = (
    AccountError,
    AuthError,
    HttpTransportError,
    NothingToReorderError,
    ShopifyClientError,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Ace Fixings storefront",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m src.main collections --search screws
  python -m src.main products wood-screws --vendor Spax --max-price 20
  python -m src.main cart add gid://shopify/ProductVariant/1 --quantity 10
  python -m src.main vat ex
  python -m src.main login            # then: callback '<redirect url>'
  python -m src.main orders
  python -m src.main serve --port 8000
        """,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable DEBUG logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("collections", help="List collections")
    p.add_argument("--search", default="")

    p = sub.add_parser("products", help="List products in a collection")
    p.add_argument("handle")
    p.add_argument("--search", default="")
    p.add_argument("--min-price", type=float, default=0.0)
    p.add_argument("--max-price", type=float, default=999.0)
    p.add_argument("--vendor", action="append", default=[])

    p = sub.add_parser("product", help="Show one product")
    p.add_argument("collection")
    p.add_argument("product", help="Product handle or id")

    cart = sub.add_parser("cart", help="Show or change the cart")
    cart_sub = cart.add_subparsers(dest="cart_command")
    cart_sub.add_parser("show")
    c = cart_sub.add_parser("add")
    c.add_argument("variant_id")
    c.add_argument("--quantity", "-q", type=int, default=1)
    c = cart_sub.add_parser("update")
    c.add_argument("line_id")
    c.add_argument("quantity", type=int)
    c = cart_sub.add_parser("remove")
    c.add_argument("line_id")
    cart_sub.add_parser("checkout")

    p = sub.add_parser("vat", help="Show prices including or excluding VAT")
    p.add_argument("mode", choices=[m.value for m in VatMode])

    sub.add_parser("login", help="Print the Shopify login URL")
    p = sub.add_parser("callback", help="Complete login with the redirect URL")
    p.add_argument("url")
    sub.add_parser("logout")
    sub.add_parser("whoami")

    p = sub.add_parser("orders", help="List your orders")
    p.add_argument("--cached", action="store_true", help="Show cached orders only")
    p = sub.add_parser("reorder", help="Add a previous order to the cart")
    p.add_argument("order", help="Order name (e.g. #1001), number or id")
    p = sub.add_parser("invoice", help="Print an order invoice")
    p.add_argument("order")

    p = sub.add_parser("register", help="Create a trade account")
    p.add_argument("email")
    p.add_argument("--first-name", default="")
    p.add_argument("--last-name", default="")
    p.add_argument("--phone", default="")
    p.add_argument("--address1", default="")
    p.add_argument("--city", default="")
    p.add_argument("--county", default="")
    p.add_argument("--postcode", default="")
    p.add_argument("--country", default=None)
    p.add_argument("--vat-number", default="")

    p = sub.add_parser("vat-submit", help="Request VAT exemption")
    p.add_argument("business_name")
    p.add_argument("vat_number")
    p.add_argument("--country", default=None)

    p = sub.add_parser("favorite", help="Toggle a product as favorite")
    p.add_argument("collection")
    p.add_argument("product")
    sub.add_parser("favorites", help="List favorites")

    p = sub.add_parser("serve", help="Run the proxy service")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)

    return parser.parse_args(argv)


def toast(console: Console, message: str, ok: bool = True) -> None:
    style = "bold green" if ok else "bold red"
    mark = "✓" if ok else "✗"
    console.print(f"[{style}]{mark}[/{style}] {message}")


def display_collections(console: Console, collections: list[dict[str, Any]]) -> None:
    if not collections:
        console.print("[yellow]No collections found.[/yellow]")
        return
    table = Table(title="[bold]Collections[/bold]", header_style="bold cyan")
    table.add_column("Handle", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Description", max_width=50, style="dim")
    for c in collections:
        table.add_row(c["handle"], c["title"], c["description"][:120])
    console.print(table)


def display_products(
    console: Console,
    app: StorefrontApp,
    products: list[dict[str, Any]],
    title: str,
) -> None:
    if not products:
        console.print("[yellow]No products match.[/yellow]")
        return
    table = Table(title=f"[bold]{title}[/bold] ({app.vat_label})", header_style="bold cyan")
    table.add_column("Handle", style="cyan", no_wrap=True)
    table.add_column("Title")
    table.add_column("Vendor", style="dim")
    table.add_column("Price", justify="right")
    table.add_column("Was", justify="right", style="dim strike")
    table.add_column("Stock", justify="center")

    for product in products:
        variant = (product.get("variants") or [{}])[0]
        if not variant:
            stock = Text("—", style="dim")
        elif not variant.get("availableForSale"):
            stock = Text("Out of stock", style="red")
        elif variant.get("quantityAvailable") is not None and variant["quantityAvailable"] <= 10:
            stock = Text(f"Low ({variant['quantityAvailable']})", style="yellow")
        else:
            stock = Text("In stock", style="green")
        table.add_row(
            product["handle"],
            product["title"],
            product["vendor"],
            app.price(variant.get("price")),
            app.compare_at(variant.get("compareAtPrice")),
            stock,
        )
    console.print(table)


def display_product(console: Console, app: StorefrontApp, product: dict[str, Any]) -> None:
    body = Text()
    body.append(f"{product['vendor']}  {product['productType']}\n\n", style="dim")
    body.append(product["description"] or "No description.")
    console.print(Panel(body, title=f"[bold]{product['title']}[/bold]", border_style="blue"))

    table = Table(header_style="bold cyan")
    table.add_column("Variant id", style="dim", no_wrap=True)
    table.add_column("Option")
    table.add_column("SKU")
    table.add_column(f"Price ({app.vat_label})", justify="right")
    table.add_column("Available", justify="center")
    for v in product["variants"]:
        table.add_row(
            v["id"],
            v["title"],
            v["sku"],
            app.price(v["price"]),
            "yes" if v["availableForSale"] else "no",
        )
    console.print(table)

    tiers = ", ".join(f"{q}+ → {pct}% off" for q, pct in reversed(BulkPricing.TIERS))
    console.print(f"[dim]Bulk pricing: {tiers}[/dim]")
    rating = app.reviews.average_rating(product["id"])
    if rating:
        console.print(f"[dim]Rating: {rating} / 5[/dim]")


def display_cart(console: Console, app: StorefrontApp) -> None:
    cart = app.cart.cart
    if not cart or not cart["lines"]:
        console.print("[yellow]Your cart is empty.[/yellow]")
        return

    table = Table(title=f"[bold]Cart[/bold] ({app.vat_label})", header_style="bold cyan")
    table.add_column("Line id", style="dim", no_wrap=True)
    table.add_column("Product")
    table.add_column("SKU", style="dim")
    table.add_column("Qty", justify="right")
    table.add_column("Unit", justify="right")
    for line in cart["lines"]:
        table.add_row(
            line["id"],
            f"{line['productTitle']} - {line['variantTitle']}",
            line["sku"],
            str(line["quantity"]),
            app.price(line["price"]),
        )
    console.print(table)

    totals = app.cart_totals()
    summary = Text()
    summary.append("Subtotal: ", style="dim")
    summary.append(f"{format_gbp(totals['subtotal'])}\n")
    summary.append("VAT: ", style="dim")
    summary.append(f"{format_gbp(totals['tax'])}\n")
    summary.append("Total: ", style="dim")
    summary.append(format_gbp(totals["total"]), style="bold")
    console.print(Panel(summary, title="[bold]Totals[/bold]", border_style="green"))


def display_orders(console: Console, orders: list[dict[str, Any]]) -> None:
    if not orders:
        console.print("[yellow]No orders yet.[/yellow]")
        return
    table = Table(title="[bold]Orders[/bold]", header_style="bold cyan")
    table.add_column("Order", style="cyan", no_wrap=True)
    table.add_column("Date")
    table.add_column("Payment")
    table.add_column("Fulfillment")
    table.add_column("Items", justify="right")
    table.add_column("Total", justify="right")
    for order in orders:
        table.add_row(
            order.get("name") or "",
            format_datetime(order.get("createdAt")),
            order.get("financialStatus") or "",
            order.get("fulfillmentStatus") or "",
            str(len(line_items(order))),
            format_money_v2(order.get("totalPrice")),
        )
    console.print(table)


def _load_product(app: StorefrontApp, collection: str, handle: str) -> dict[str, Any]:
    app.catalog.load_collection(collection)
    product = app.catalog.find_product(handle)
    if product is None:
        raise ShopifyClientError(f"Product {handle} not found in {collection}")
    return product


def _find_order(app: StorefrontApp, name: str) -> dict[str, Any]:
    order = app.orders.find_order(name)
    if order is None and app.auth.current_session() is not None:
        app.orders.load_orders()
        order = app.orders.find_order(name)
    if order is None:
        raise NothingToReorderError(f"Order {name} not found")
    return order


def run_command(args: argparse.Namespace, app: StorefrontApp, console: Console) -> int:
    """Dispatch one command. Returns the exit code."""
    command = args.command
    settings = app.settings

    if command == "collections":
        display_collections(console, filter_collections(app.catalog.load_collections(), args.search))

    elif command == "products":
        collection, products = app.catalog.load_collection(args.handle)
        product_filter = ProductFilter(
            search=args.search,
            min_price=args.min_price,
            max_price=args.max_price,
            vendors=args.vendor,
        )
        display_products(console, app, product_filter.apply(products), collection["title"])
        vendors = all_vendors(products)
        if vendors:
            console.print(f"[dim]Vendors: {', '.join(vendors)}[/dim]")

    elif command == "product":
        display_product(console, app, _load_product(app, args.collection, args.product))

    elif command == "cart":
        action = args.cart_command or "show"
        if action == "show":
            app.cart.ensure_cart_id()
        elif action == "add":
            app.cart.add_line(args.variant_id, args.quantity)
            toast(console, "Added to cart")
        elif action == "update":
            app.cart.update_line(args.line_id, args.quantity)
        elif action == "remove":
            app.cart.remove_line(args.line_id)
            toast(console, "Removed from cart")
        elif action == "checkout":
            url = app.cart.checkout_url()
            console.print(f"Checkout: [link={url}]{url}[/link]")
            return 0
        display_cart(console, app)

    elif command == "vat":
        app.account.vat_mode = VatMode(args.mode)
        toast(console, f"Showing prices {app.vat_label}")

    elif command == "login":
        url = app.auth.start_login()
        console.print(Panel(
            f"Open this URL to log in:\n\n[link={url}]{url}[/link]\n\n"
            "Then run: [bold]callback '<redirect url>'[/bold]",
            title="[bold]Login[/bold]",
            border_style="blue",
        ))

    elif command == "callback":
        profile = app.complete_login(args.url)
        if profile is None:
            console.print("[yellow]Not a login redirect for this app; ignored.[/yellow]")
            return 1
        toast(console, f"Logged in as {app.account.user_line or profile.get('email')}")
        if app.account.company_account and app.account.company_account.verified:
            toast(console, "Tax exempt account verified - showing Ex-VAT prices")

    elif command == "logout":
        app.logout()
        toast(console, "Logged out")

    elif command == "whoami":
        if not app.account.email:
            console.print("[yellow]Not logged in.[/yellow]")
        else:
            console.print(app.account.user_line)
            console.print(f"[dim]Prices shown {app.vat_label}[/dim]")
            if app.account.vat_form_submitted:
                console.print("[dim]VAT exemption request submitted[/dim]")

    elif command == "orders":
        if not args.cached:
            app.orders.load_orders()
        display_orders(console, app.orders.orders)
        if app.orders.recently_ordered:
            names = ", ".join(item["name"] for item in app.orders.recently_ordered)
            console.print(f"[dim]Recently ordered: {names}[/dim]")

    elif command == "reorder":
        app.orders.reorder(_find_order(app, args.order))
        toast(console, "Added previous order to cart")
        display_cart(console, app)

    elif command == "invoice":
        console.print(invoice_text(_find_order(app, args.order)))

    elif command == "register":
        form = RegistrationForm(
            email=args.email,
            first_name=args.first_name,
            last_name=args.last_name,
            phone=args.phone,
            address1=args.address1,
            city=args.city,
            county=args.county,
            postcode=args.postcode,
            country=args.country or settings.default_country,
            vat_number=args.vat_number,
        )
        result = app.account.register_customer(form)
        toast(console, result.get("message") or "Account created! Check your email to set your password, then login.")

    elif command == "vat-submit":
        message = app.account.submit_vat_verification(
            args.business_name, args.country or settings.default_country, args.vat_number
        )
        toast(console, message)

    elif command == "favorite":
        product = _load_product(app, args.collection, args.product)
        added = app.favorites.toggle(product)
        toast(console, f"{'Added to' if added else 'Removed from'} favorites")

    elif command == "favorites":
        favorites = app.favorites.all()
        if not favorites:
            console.print("[yellow]No favorites yet.[/yellow]")
        for item in favorites:
            console.print(f"[cyan]{item.get('handle')}[/cyan] {item.get('title')}")

    return 0


def serve(host: str, port: int) -> int:
    import uvicorn

    uvicorn.run("src.proxy.app:app", host=host, port=port, log_config=None)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    args = parse_args(argv)
    console = Console()

    log_level = "DEBUG" if args.verbose else None
    setup_logging(log_level=log_level)

    if args.command == "serve":
        return serve(args.host, args.port)

    try:
        with StorefrontApp(get_settings()) as app:
            app.boot()
            return run_command(args, app, console)

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user.[/yellow]")
        return 130

    except USER_ERRORS as e:
        logger.debug("Command failed", exc_info=True)
        toast(console, str(e), ok=False)
        return 1

    except Exception as e:
        logger.exception("Unexpected error")
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if args.verbose:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())

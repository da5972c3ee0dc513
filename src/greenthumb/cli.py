"""Command-line interface for greenthumb."""

import argparse
import json
import os
import sys

from . import __version__
from .catalog import PlantCatalog
from .config import Settings, load_settings
from .database import Database
from .errors import GreenthumbError
from .inventory import InventoryLedger
from .log import configure_logging
from .models import Order, Plant
from .orders import OrderService
from .reports import REPORTS, inventory_report, order_report, sales_report
from .seed import seed_database
from .users import UserService


def get_settings(args: argparse.Namespace) -> Settings:
    """Load settings, letting --database override the environment."""
    settings = load_settings(database_url=getattr(args, "database", None))
    configure_logging(settings.log_level, settings.environment)
    return settings


def get_database(args: argparse.Namespace) -> Database:
    return Database.from_settings(get_settings(args))


def format_plant(plant: Plant) -> str:
    return f"  {plant.plant_id:<8} {plant.name:<20} {plant.type:<12} {plant.price:>9}  qty {plant.quantity}"


def format_order(order: Order, verbose: bool = False) -> str:
    line = (
        f"  {order.order_id}  {order.status.value:<10} {order.customer_id:<16} "
        f"{order.total_amount:>9}  {order.order_date:%Y-%m-%d %H:%M}"
    )
    if not verbose:
        return line
    lines = [line]
    for item in order.order_items:
        name = item.plant.name if item.plant else item.plant_id
        lines.append(f"      {item.quantity} x {name} @ {item.unit_price} = {item.subtotal}")
    return "\n".join(lines)


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create the schema and optionally load sample data."""
    try:
        db = get_database(args)
        db.create_schema()
        print(f"Initialized database at {db.url}")

        if args.seed:
            added = seed_database(db)
            print(f"Seeded {added['plants']} plants and {added['users']} users")

        return 0

    except GreenthumbError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


# --- plants ---


def cmd_plants_list(args: argparse.Namespace) -> int:
    """List plants."""
    try:
        catalog = PlantCatalog(get_database(args))
        if args.type:
            plants = catalog.plants_by_type(args.type)
        elif args.available:
            plants = catalog.available_plants()
        else:
            plants = catalog.list_plants()
        if args.available:
            plants = [p for p in plants if p.quantity > 0]

        if not plants:
            print("No plants found.")
            return 0

        if args.json:
            print(json.dumps([p.to_dict() for p in plants], indent=2))
        else:
            print(f"Plants ({len(plants)}):")
            for plant in plants:
                print(format_plant(plant))

        return 0

    except GreenthumbError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_plants_add(args: argparse.Namespace) -> int:
    """Add a plant to the catalogue."""
    try:
        plant = PlantCatalog(get_database(args)).create_plant(
            args.plant_id,
            args.name,
            args.type,
            args.price,
            args.quantity,
            args.description or "",
        )
        print(f"Added plant: {plant.plant_id} ({plant.name})")
        return 0

    except GreenthumbError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_plants_restock(args: argparse.Namespace) -> int:
    """Add stock to a plant."""
    try:
        plant = InventoryLedger(get_database(args)).restock(args.plant_id, args.amount)
        print(f"Restocked {plant.plant_id}: now {plant.quantity} in stock")
        return 0

    except GreenthumbError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_plants_low_stock(args: argparse.Namespace) -> int:
    """List plants running low."""
    try:
        settings = get_settings(args)
        ledger = InventoryLedger(Database.from_settings(settings), settings.low_stock_threshold)
        threshold = args.threshold if args.threshold is not None else settings.low_stock_threshold
        plants = ledger.low_stock(threshold)

        if not plants:
            print(f"No plants below {threshold} units.")
            return 0

        print(f"Low stock (below {threshold}):")
        for plant in plants:
            print(format_plant(plant))
        return 0

    except GreenthumbError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


# --- orders ---


def cmd_orders_list(args: argparse.Namespace) -> int:
    """List orders, newest first."""
    try:
        orders = OrderService(get_database(args)).list_orders(
            status=args.status, customer_id=args.customer
        )

        if not orders:
            print("No orders found.")
            return 0

        if args.json:
            print(json.dumps([o.to_dict() for o in orders], indent=2))
        else:
            print(f"Orders ({len(orders)}):")
            for order in orders:
                print(format_order(order))

        return 0

    except GreenthumbError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_show(args: argparse.Namespace) -> int:
    """Show one order with its items."""
    try:
        order = OrderService(get_database(args)).get_order(args.order_id)

        if args.json:
            print(json.dumps(order.to_dict(), indent=2))
        else:
            print(format_order(order, verbose=True))

        return 0

    except GreenthumbError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_process(args: argparse.Namespace) -> int:
    """Move a Pending order to Processing."""
    try:
        order = OrderService(get_database(args)).process_order(args.order_id)
        print(f"Order {order.order_id} processed (status: {order.status.value})")
        return 0

    except GreenthumbError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_status(args: argparse.Namespace) -> int:
    """Change an order's status."""
    try:
        order = OrderService(get_database(args)).update_order_status(args.order_id, args.status)
        print(f"Order {order.order_id} is now {order.status.value}")
        return 0

    except GreenthumbError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_orders_cancel(args: argparse.Namespace) -> int:
    """Cancel an order."""
    try:
        order = OrderService(get_database(args)).cancel_order(args.order_id, args.customer)
        print(f"Order {order.order_id} cancelled")
        return 0

    except GreenthumbError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


# --- users ---


def cmd_users_list(args: argparse.Namespace) -> int:
    """List users."""
    try:
        users = UserService(get_database(args)).list_users(args.role)

        if not users:
            print("No users found.")
            return 0

        if args.json:
            print(json.dumps([u.to_dict() for u in users], indent=2))
        else:
            print(f"Users ({len(users)}):")
            for user in users:
                print(f"  {user.user_id:<14} {user.username:<20} {user.role.value}")

        return 0

    except GreenthumbError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_users_add(args: argparse.Namespace) -> int:
    """Register a user."""
    try:
        user = UserService(get_database(args)).create_user(
            args.user_id,
            args.username,
            args.password,
            args.role,
            address=args.address,
            phone=args.phone,
        )
        print(f"Created {user.role.value} user: {user.username} ({user.user_id})")
        return 0

    except GreenthumbError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


# --- report ---


def cmd_report(args: argparse.Namespace) -> int:
    """Print a report as JSON."""
    try:
        settings = get_settings(args)
        db = Database.from_settings(settings)
        if args.report == "inventory":
            threshold = (
                args.threshold if args.threshold is not None else settings.low_stock_threshold
            )
            report = inventory_report(db, threshold)
        elif args.report == "orders":
            report = order_report(db, args.days if args.days is not None else 7)
        elif args.report == "sales":
            report = sales_report(db, args.days if args.days is not None else 30)
        else:
            report = REPORTS[args.report](db)

        print(json.dumps(report, indent=2))
        return 0

    except GreenthumbError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the API server."""
    try:
        import uvicorn

        if args.database:
            # The app builds its own Database from the environment
            os.environ["GREENTHUMB_DATABASE_URL"] = args.database
        settings = get_settings(args)

        print("Starting greenthumb API server...")
        print(f"Database: {settings.database_url}")
        print(f"API docs: http://{args.host}:{args.port}/docs")
        print()

        # When reload is enabled, uvicorn requires the app as an import string
        app_target = "greenthumb.api:app" if args.reload else None
        if app_target is None:
            from .api import app
            app_target = app

        uvicorn.run(
            app_target,
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_level=settings.log_level.lower(),
        )
        return 0

    except (GreenthumbError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="greenthumb",
        description="Manage the Greenthumb nursery: plants, orders and users.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--database", help="SQLAlchemy database URL (default: GREENTHUMB_DATABASE_URL or data/)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init-db
    init_parser = subparsers.add_parser("init-db", help="Create the database schema")
    init_parser.add_argument("--seed", action="store_true", help="Load sample plants and users")

    # plants (subcommand group)
    plants_parser = subparsers.add_parser("plants", help="Manage the plant catalogue")
    plants_subparsers = plants_parser.add_subparsers(dest="plants_command")

    plants_list_parser = plants_subparsers.add_parser("list", help="List plants")
    plants_list_parser.add_argument("--available", action="store_true", help="Only plants in stock")
    plants_list_parser.add_argument("--type", "-t", help="Only plants of this type")
    plants_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    plants_add_parser = plants_subparsers.add_parser("add", help="Add a plant")
    plants_add_parser.add_argument("plant_id", help="Plant ID (letters, digits, '_' or '-')")
    plants_add_parser.add_argument("name", help="Plant name")
    plants_add_parser.add_argument("type", help="Plant type, e.g. Flower")
    plants_add_parser.add_argument("price", help="Unit price, e.g. 12.50")
    plants_add_parser.add_argument(
        "--quantity", "-q", type=int, default=0, help="Initial stock (default: 0)"
    )
    plants_add_parser.add_argument("--description", "-d", help="Description")

    plants_restock_parser = plants_subparsers.add_parser("restock", help="Add stock to a plant")
    plants_restock_parser.add_argument("plant_id", help="Plant ID")
    plants_restock_parser.add_argument("amount", type=int, help="Units to add")

    plants_low_parser = plants_subparsers.add_parser("low-stock", help="List plants running low")
    plants_low_parser.add_argument(
        "--threshold", type=int, help="Stock level to warn below (default: from settings)"
    )

    # orders (subcommand group)
    orders_parser = subparsers.add_parser("orders", help="Manage orders")
    orders_subparsers = orders_parser.add_subparsers(dest="orders_command")

    orders_list_parser = orders_subparsers.add_parser("list", help="List orders")
    orders_list_parser.add_argument("--status", "-s", help="Only orders in this status")
    orders_list_parser.add_argument("--customer", "-c", help="Only this customer's orders")
    orders_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    orders_show_parser = orders_subparsers.add_parser("show", help="Show an order")
    orders_show_parser.add_argument("order_id", help="Order ID")
    orders_show_parser.add_argument("--json", action="store_true", help="Output as JSON")

    orders_process_parser = orders_subparsers.add_parser(
        "process", help="Process a pending order (takes stock)"
    )
    orders_process_parser.add_argument("order_id", help="Order ID")

    orders_status_parser = orders_subparsers.add_parser("status", help="Change an order's status")
    orders_status_parser.add_argument("order_id", help="Order ID")
    orders_status_parser.add_argument(
        "status", help="Pending|Processing|Shipped|Delivered|Cancelled|Returned"
    )

    orders_cancel_parser = orders_subparsers.add_parser("cancel", help="Cancel an order")
    orders_cancel_parser.add_argument("order_id", help="Order ID")
    orders_cancel_parser.add_argument("--customer", "-c", help="Require the order to be theirs")

    # users (subcommand group)
    users_parser = subparsers.add_parser("users", help="Manage users")
    users_subparsers = users_parser.add_subparsers(dest="users_command")

    users_list_parser = users_subparsers.add_parser("list", help="List users")
    users_list_parser.add_argument("--role", "-r", help="Admin, Staff or Customer")
    users_list_parser.add_argument("--json", action="store_true", help="Output as JSON")

    users_add_parser = users_subparsers.add_parser("add", help="Register a user")
    users_add_parser.add_argument("user_id", help="User ID")
    users_add_parser.add_argument("username", help="Username (3-20 letters, digits, '_')")
    users_add_parser.add_argument("password", help="Password (6-50 characters)")
    users_add_parser.add_argument("role", help="Admin, Staff or Customer")
    users_add_parser.add_argument("--address", help="Customer address")
    users_add_parser.add_argument("--phone", help="Customer phone number")

    # report
    report_parser = subparsers.add_parser("report", help="Print a report as JSON")
    report_parser.add_argument("report", choices=sorted(REPORTS), help="Report to print")
    report_parser.add_argument("--threshold", type=int, help="Low-stock threshold (inventory)")
    report_parser.add_argument("--days", type=int, help="Window for recent orders (orders, sales)")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p", type=int, default=8000, help="Port to bind to (default: 8000)"
    )
    serve_parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload for development"
    )

    return parser


GROUP_COMMANDS = {
    "plants": {
        "list": cmd_plants_list,
        "add": cmd_plants_add,
        "restock": cmd_plants_restock,
        "low-stock": cmd_plants_low_stock,
    },
    "orders": {
        "list": cmd_orders_list,
        "show": cmd_orders_show,
        "process": cmd_orders_process,
        "status": cmd_orders_status,
        "cancel": cmd_orders_cancel,
    },
    "users": {
        "list": cmd_users_list,
        "add": cmd_users_add,
    },
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    # Handle subcommand groups
    if args.command in GROUP_COMMANDS:
        subcommand = getattr(args, f"{args.command}_command", None)
        if not subcommand:
            parser.parse_args([args.command, "--help"])
            return 0
        return GROUP_COMMANDS[args.command][subcommand](args)

    commands = {
        "init-db": cmd_init_db,
        "report": cmd_report,
        "serve": cmd_serve,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        return cmd_func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())

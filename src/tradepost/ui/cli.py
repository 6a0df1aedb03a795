from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from tradepost.adapters.sqlalchemy import shutdown, startup
from tradepost.app import (
    create_shop,
    create_user,
    find_user_and_shop,
    place_order,
    rename_user,
)
from tradepost.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage users, shops and orders")
    parser.add_argument(
        "--database-uri",
        type=str,
        help="Async SQLAlchemy URL (defaults to DATABASE_URI or the data directory)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    db = subparsers.add_parser("db", help="Database maintenance")
    db_sub = db.add_subparsers(dest="db_command", required=True)
    db_sub.add_parser("upgrade", help="Upgrade the schema to the latest revision")

    user = subparsers.add_parser("user", help="User management commands")
    user_sub = user.add_subparsers(dest="user_command", required=True)
    user_create = user_sub.add_parser("create", help="Create a user")
    user_create.add_argument(
        "--display-name",
        type=str,
        required=True,
        help="Display name for the user",
    )
    user_create.add_argument(
        "--email",
        type=str,
        help="Optional email address",
    )
    user_rename = user_sub.add_parser("rename", help="Rename a user if the result is valid")
    user_rename.add_argument("--user-id", type=int, required=True, help="User to rename")
    user_rename.add_argument(
        "--display-name",
        type=str,
        required=True,
        help="New display name",
    )

    shop = subparsers.add_parser("shop", help="Shop management commands")
    shop_sub = shop.add_subparsers(dest="shop_command", required=True)
    shop_create = shop_sub.add_parser("create", help="Create a shop")
    shop_create.add_argument("--name", type=str, required=True, help="Shop name")
    shop_create.add_argument("--owner-id", type=int, help="Optional owning user id")

    order = subparsers.add_parser("order", help="Order commands")
    order_sub = order.add_subparsers(dest="order_command", required=True)
    order_place = order_sub.add_parser("place", help="Place an order for a user at a shop")
    order_place.add_argument("--user-id", type=int, required=True, help="Ordering user")
    order_place.add_argument("--shop-id", type=int, required=True, help="Shop to order from")
    order_place.add_argument(
        "--total-cents",
        type=int,
        default=0,
        help="Order total in cents (default: %(default)s)",
    )

    return parser.parse_args(list(argv))


def _validate(args: argparse.Namespace) -> None:
    if args.command == "order" and args.total_cents < 0:
        raise ValueError("Order total must be non-negative")
    if args.command == "user" and args.user_command == "create" and not args.display_name.strip():
        raise ValueError("Display name must not be blank")


async def _run(args: argparse.Namespace) -> None:
    await startup(database_uri=args.database_uri, force=True)
    try:
        await _dispatch(args)
    finally:
        await shutdown()


async def _dispatch(args: argparse.Namespace) -> None:
    if args.command == "db":
        log.info("Schema is up to date")
    elif args.command == "user" and args.user_command == "create":
        user = await create_user(display_name=args.display_name, email=args.email)
        log.info("Created user %s", user.id)
    elif args.command == "user" and args.user_command == "rename":
        result = await rename_user(user_id=args.user_id, display_name=args.display_name)
        if result.committed:
            log.info("Renamed user %s to %r", result.user_id, result.display_name)
        else:
            log.warning("Rename of user %s rolled back", result.user_id)
    elif args.command == "shop" and args.shop_command == "create":
        shop = await create_shop(name=args.name, owner_id=args.owner_id)
        log.info("Created shop %s", shop.id)
    elif args.command == "order" and args.order_command == "place":
        user, shop = await find_user_and_shop(user_id=args.user_id, shop_id=args.shop_id)
        order = await place_order(user=user, shop=shop, total_cents=args.total_cents)
        log.info("Placed order %s", order.id)
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
    try:
        _validate(parsed_args)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        asyncio.run(_run(parsed_args))
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()

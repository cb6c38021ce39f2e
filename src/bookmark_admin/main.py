"""
Command line interface for Bookmark Admin.

Administers the link directory category tree without a web frontend.
Results are printed as JSON; failures print "ERROR: ..." and exit with 1.

Usage Examples:
    # Create the database tables
    bookmark-admin init-db

    # Start over with an empty database
    bookmark-admin reset-db --yes

    # Show the whole tree, or the tree without category 4 and its children
    bookmark-admin tree
    bookmark-admin tree --except 4

    # Create a category under category 2
    bookmark-admin create "Python" --parent 2

    # Move category 7 to the top level, as first sibling
    bookmark-admin move 7 0 --position 1

    # Delete categories (children are deleted too)
    bookmark-admin delete 3 8

    # Export all categories as CSV
    bookmark-admin export categories.csv
"""

import argparse
import json
import logging
import sys

from .services import category_export_service, category_service
from .services.database import close_connections, initialize_app_database, reset_database
from .services.exceptions import ServiceError
from .utils.constants import APP_NAME, APP_VERSION

logger = logging.getLogger(__name__)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def init_db_cmd(args) -> int:
    """Create the database tables."""
    initialize_app_database()
    _print_json({"initialized": True})
    return 0


def reset_db_cmd(args) -> int:
    """Drop and recreate the tables, deleting every category."""
    if not args.yes:
        print("ERROR: reset-db deletes every category; rerun with --yes to confirm")
        return 1
    reset_database(confirm=True)
    _print_json({"reset": True})
    return 0


def tree_cmd(args) -> int:
    """Print the category tree."""
    _print_json(category_service.get_category_tree(except_category_id=args.except_id))
    return 0


def show_cmd(args) -> int:
    """Print one category."""
    category = category_service.get_category(args.id)
    _print_json(category.to_dict())
    return 0


def create_cmd(args) -> int:
    category = category_service.create_category(
        name=args.name,
        slug=args.slug,
        parent_id=args.parent,
        title=args.title,
        content=args.content,
    )
    _print_json(category.to_dict())
    return 0


def update_cmd(args) -> int:
    category = category_service.update_category(
        args.id,
        name=args.name,
        slug=args.slug,
        parent_id=args.parent,
        title=args.title,
        content=args.content,
    )
    _print_json(category.to_dict())
    return 0


def move_cmd(args) -> int:
    category = category_service.move_category(
        args.id, args.parent, order_index=args.position
    )
    _print_json(category.to_dict())
    return 0


def delete_cmd(args) -> int:
    deleted = category_service.delete_categories(args.ids)
    _print_json({"deleted": deleted})
    return 0


def export_cmd(args) -> int:
    """Export all categories to a CSV file."""
    written = category_export_service.export_categories_csv(args.file)
    if not written:
        print("ERROR: No categories to export")
        return 1
    _print_json({"exported": args.file})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bookmark-admin",
        description=f"{APP_NAME} {APP_VERSION} - link directory category administration",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log service operations to stderr"
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    init_parser = subparsers.add_parser("init-db", help="Create the database tables")
    init_parser.set_defaults(handler=init_db_cmd)

    reset_parser = subparsers.add_parser(
        "reset-db", help="Delete every category and recreate the tables"
    )
    reset_parser.add_argument("--yes", action="store_true", help="Confirm the reset")
    reset_parser.set_defaults(handler=reset_db_cmd)

    tree_parser = subparsers.add_parser("tree", help="Print the category tree")
    tree_parser.add_argument(
        "--except",
        dest="except_id",
        type=int,
        default=0,
        help="Leave out this category and its descendants",
    )
    tree_parser.set_defaults(handler=tree_cmd)

    show_parser = subparsers.add_parser("show", help="Print one category")
    show_parser.add_argument("id", type=int, help="Category id")
    show_parser.set_defaults(handler=show_cmd)

    create_parser = subparsers.add_parser("create", help="Create a category")
    create_parser.add_argument("name", help="Category name")
    create_parser.add_argument("--slug", help="URL slug (generated from name if omitted)")
    create_parser.add_argument("--parent", type=int, default=0, help="Parent id (0 = top level)")
    create_parser.add_argument("--title", help="Page title")
    create_parser.add_argument("--content", help="Description")
    create_parser.set_defaults(handler=create_cmd)

    update_parser = subparsers.add_parser("update", help="Update a category")
    update_parser.add_argument("id", type=int, help="Category id")
    update_parser.add_argument("--name", help="New name")
    update_parser.add_argument("--slug", help="New slug")
    update_parser.add_argument("--parent", type=int, help="New parent id (0 = top level)")
    update_parser.add_argument("--title", help="New page title")
    update_parser.add_argument("--content", help="New description")
    update_parser.set_defaults(handler=update_cmd)

    move_parser = subparsers.add_parser("move", help="Move a category to a new parent")
    move_parser.add_argument("id", type=int, help="Category id")
    move_parser.add_argument("parent", type=int, help="New parent id (0 = top level)")
    move_parser.add_argument(
        "--position", type=int, help="Position among the new siblings (default: last)"
    )
    move_parser.set_defaults(handler=move_cmd)

    delete_parser = subparsers.add_parser(
        "delete", help="Delete categories together with their descendants"
    )
    delete_parser.add_argument("ids", nargs="+", help="Category ids")
    delete_parser.set_defaults(handler=delete_cmd)

    export_parser = subparsers.add_parser("export", help="Export all categories as CSV")
    export_parser.add_argument("file", help="CSV file path")
    export_parser.set_defaults(handler=export_cmd)

    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command != "init-db":
            initialize_app_database()
        return args.handler(args)
    except ServiceError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"ERROR: {e}")
        return 1
    finally:
        close_connections()


if __name__ == "__main__":
    sys.exit(main())

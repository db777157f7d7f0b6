"""ShopLedger management CLI.

Creates and drops the commerce database schema, and checks that cached
variant stock still matches what the stock ledger replays to.

Usage:
    python src/manage.py setup-db                       # Create all tables
    python src/manage.py drop-db                        # Drop all tables
    python src/manage.py verify-stock <product_id> ...  # Compare stock with ledger replay
"""

import argparse
import sys


def _commerce():
    from commerce.domain import commerce

    print("Initializing commerce domain...")
    commerce.init()
    return commerce


def setup_database():
    """Create the database schema for the commerce domain."""
    from commerce.utils.db import setup_db

    commerce = _commerce()
    print("Creating commerce database schema...")
    providers = setup_db(commerce)
    print(f"  schema ready ({', '.join(providers) or 'no SQL providers'}).")
    print("Done.")


def drop_database():
    """Drop the database schema for the commerce domain."""
    from commerce.utils.db import drop_db

    commerce = _commerce()
    print("Dropping commerce database schema...")
    providers = drop_db(commerce)
    print(f"  schema dropped ({', '.join(providers) or 'no SQL providers'}).")
    print("Done.")


def verify_stock(product_ids) -> bool:
    """Replay each product's ledger and compare it with the cached stock.

    Returns True when every variant matches.
    """
    from commerce.stock.ledger import StockLedger
    from commerce.stock.product import Product

    commerce = _commerce()
    consistent = True
    with commerce.domain_context():
        ledger = StockLedger()
        repo = commerce.repository_for(Product)
        for product_id in product_ids:
            product = repo.get(product_id)
            replayed = ledger.replay(product_id)
            for variant in product.variants:
                expected = replayed.get((variant.size, variant.color), 0)
                marker = "ok" if expected == variant.stock else "MISMATCH"
                consistent = consistent and expected == variant.stock
                print(f"  {product_id} {variant.size}/{variant.color}: stock={variant.stock} ledger={expected} {marker}")
    return consistent


def main():
    parser = argparse.ArgumentParser(description="ShopLedger management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    verify_parser = subparsers.add_parser("verify-stock", help="Compare variant stock with its ledger")
    verify_parser.add_argument("product_ids", nargs="+", help="Product id(s) to check")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "verify-stock":
        if not verify_stock(args.product_ids):
            sys.exit(1)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()

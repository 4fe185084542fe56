#!/usr/bin/env python3
"""
Seed the advocate directory from a JSON file.

Usage:
    python -m intellect.scripts.seed_advocates advocates.json [--create-tables]

The file holds a JSON array of advocate objects (sl_no, name,
short_description, skills, experience, gender, rating, email, country).
Existing advocates with the same sl_no are replaced. DATABASE_URL must be set;
without a database, point ADVOCATES_FILE at the same file instead.

Exit codes: 0 seeded, 1 bad file, 2 no database or store unavailable.
"""
import argparse
import sys
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from intellect.core.database import create_all_tables
from intellect.core.dependencies import get_advocate_store, using_database
from intellect.core.errors import StoreUnavailableError
from intellect.features.advocates.store import load_advocates_file

def seed(path: str, create_tables: bool = False) -> int:
    advocates = load_advocates_file(path)
    if create_tables and using_database():
        create_all_tables()
    return get_advocate_store().upsert_many(advocates)

def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the advocate directory")
    parser.add_argument("path", help="JSON file with an array of advocates")
    parser.add_argument("--create-tables", action="store_true", help="create missing tables first")
    args = parser.parse_args(argv)

    if not using_database():
        print("ERROR: DATABASE_URL is not set; nothing to seed into (set ADVOCATES_FILE to serve advocates from a file)")
        return 2

    try:
        count = seed(args.path, create_tables=args.create_tables)
    except (OSError, ValueError, PydanticValidationError) as e:
        print(f"ERROR: could not load {args.path}: {e}")
        return 1
    except StoreUnavailableError as e:
        print(f"ERROR: advocate store unavailable: {e.__cause__ or e}")
        return 2

    print(f"Seeded {count} advocates into the database")
    return 0

if __name__ == "__main__":
    sys.exit(main())

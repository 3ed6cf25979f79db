"""CLI script to import a class roster CSV into the backend DB.
Usage: python scripts/import_roster.py FILE --kelas NAME [--database-url URL]
"""
import sys
import argparse
import pathlib
from typing import Optional
# Ensure the repo root is on sys.path so `roster_api` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from roster_api.config import settings
from roster_api.database import Database
from roster_api.errors import RosterError
from roster_api.services import RosterService


def main(path: pathlib.Path, class_name: str, database_url: Optional[str] = None) -> int:
    """Read `path` and create or replace the roster of `class_name`.

    Results are printed to stdout for a quick CLI feedback loop. Returns
    the process exit code.
    """
    if not path.exists():
        print(f'File not found: {path}')
        return 1
    db = Database(database_url or settings.DATABASE_URL, echo=settings.DB_ECHO)
    db.create_db_and_tables()
    try:
        with db.session() as session:
            svc = RosterService(session)
            try:
                row, outcome = svc.import_roster(class_name, path.read_bytes())
            except RosterError as e:
                print(f'Error importing {path}: {e}')
                return 2
            print(f'Imported {path} into {row.name!r}: {outcome.value}, {len(row.students)} students')
    finally:
        db.close()
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('file', type=pathlib.Path, help='CSV file with a header line then name,id rows')
    parser.add_argument('--kelas', required=True, help='Class name to create or replace')
    parser.add_argument('--database-url', help='Override DATABASE_URL')
    args = parser.parse_args()
    sys.exit(main(args.file, args.kelas, database_url=args.database_url))

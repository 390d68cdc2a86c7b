#!/usr/bin/env python3
"""Seed the default marker categories for teams that have none.

Every team gets the Area, Locations, Devices and Assets categories the
first time it opens a session. This script does the same ahead of time for
teams already in the database, for example after restoring a backup that
predates categories. Teams with at least one category are left untouched,
so running it twice is harmless.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv  # noqa: E402

load_dotenv()

from database import SessionLocal, TeamRecord, init_db  # noqa: E402
from logic.categories import default_categories  # noqa: E402
from persistence_service import SqlPersistence  # noqa: E402


def seed_categories(team_names=None) -> int:
    """Create default categories for teams without any.

    Args:
        team_names: Restrict seeding to these team names; all teams if None.

    Returns:
        Number of teams that were seeded.
    """
    init_db()
    adapter = SqlPersistence()

    db = SessionLocal()
    try:
        query = db.query(TeamRecord)
        if team_names:
            query = query.filter(TeamRecord.name.in_(team_names))
        teams = [t.to_entity() for t in query.all()]
    finally:
        db.close()

    if not teams:
        print("No teams found")
        return 0

    seeded = 0
    for team in teams:
        if adapter.list_categories(team.id):
            print(f"  - {team.name}: already has categories, skipped")
            continue
        for category in default_categories(team.id):
            adapter.save_category(category)
        seeded += 1
        print(f"  - {team.name}: default categories created")

    print(f"Seeded {seeded} of {len(teams)} team(s)")
    return seeded


def main():
    """Main entry point for the seeding script."""
    seed_categories(sys.argv[1:] or None)


if __name__ == "__main__":
    main()

"""
Migration: legacy AmbuHub database -> current schema
- Rewrites the role strings written by the old server ('usuario_padrão',
  'usuario_ambulante' and their mis-encoded variants) to 'standard_user' /
  'vendor_user'; NULL or unknown roles become 'standard_user'
- Creates any missing tables (products, sessions)

Password hashes are left untouched: legacy bcrypt hashes still verify and are
rehashed on the user's next login.

Usage:
  python -m migration.migration_legacy_roles --database-url postgresql://user:pw@host/ambuhub
"""
import argparse
import logging

from sqlalchemy import inspect, text

from ambuhub.db import Base, make_engine

logger = logging.getLogger(__name__)

LEGACY_ROLES = {
    "usuario_padrão": "standard_user",
    "usuario_padrao": "standard_user",
    "usuario_padrÃ£o": "standard_user",
    "usuario_ambulante": "vendor_user",
}
VALID_ROLES = ("standard_user", "vendor_user")


def migrate(database_url: str) -> dict:
    """Run the migration and return how many users were rewritten per target role."""
    engine = make_engine(database_url)
    try:
        if "users" not in inspect(engine).get_table_names():
            raise RuntimeError("users table missing; cannot migrate")

        counts = {role: 0 for role in VALID_ROLES}
        with engine.begin() as conn:
            for legacy, current in LEGACY_ROLES.items():
                res = conn.execute(text("UPDATE users SET role = :new WHERE role = :old"), {"new": current, "old": legacy})
                counts[current] += res.rowcount or 0
            res = conn.execute(
                text("UPDATE users SET role = 'standard_user' WHERE role IS NULL OR role NOT IN ('standard_user', 'vendor_user')")
            )
            counts["standard_user"] += res.rowcount or 0

        # models must be imported so they are registered on Base.metadata
        from ambuhub import models  # noqa: F401
        Base.metadata.create_all(bind=engine)
        logger.info("Migrated legacy roles: %s", counts)
        return counts
    finally:
        engine.dispose()


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--database-url", required=True, help="SQLAlchemy database URL")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    migrate(args.database_url)

if __name__ == "__main__":
    main()

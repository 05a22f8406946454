"""
CondoGuard Entry Point.

Bootstraps the dependency graph via constructor injection, initialises
the local SQLite schema, attaches the session store to the Supabase
identity provider, and prints the guard decision for each path given
on the command line.  Every subsystem is wired here; there are no
module-level globals.

Usage::

    python main.py /dashboard /condominios/123/checkin
    python main.py --manager /configuracoes
"""

from __future__ import annotations

import atexit
import sys
from pathlib import Path
from typing import Optional, Sequence

from condoguard.config import get_config
from condoguard.container import create_engine
from condoguard.database import DatabaseManager
from condoguard.identity import IdentityProvider, SupabaseIdentityProvider
from condoguard.logger import StructuredLogger, get_logger
from condoguard.models.enums import RequiredRole, Route
from condoguard.schema import initialize_schema


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Wire dependencies, resolve the session, and evaluate *argv* paths."""
    args = list(sys.argv[1:] if argv is None else argv)
    required_role: Optional[RequiredRole] = None
    if args and args[0] == "--manager":
        required_role = RequiredRole.MANAGER
        args = args[1:]
    paths = args or [str(Route.DASHBOARD)]

    logger: StructuredLogger = get_logger("main")
    logger.info("Starting CondoGuard...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Database Manager (Supabase optional, SQLite always)
    # ------------------------------------------------------------------
    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path(config.LOCAL_DB_PATH),
        logger=StructuredLogger(name="database"),
    )
    atexit.register(db.close)

    # ------------------------------------------------------------------
    # 3. Local schema (idempotent)
    # ------------------------------------------------------------------
    initialize_schema(db.sqlite, StructuredLogger(name="schema"))

    # ------------------------------------------------------------------
    # 4. Identity provider + engine
    # ------------------------------------------------------------------
    identity: Optional[IdentityProvider] = None
    if db.is_online:
        identity = SupabaseIdentityProvider(
            client=db.supabase,
            logger=StructuredLogger(name="identity"),
        )
    engine = create_engine(db=db, config=config, identity=identity)
    store = engine["session_store"]

    if identity is not None:
        store.attach(
            identity,
            on_destination=lambda route: logger.info("Navigate to %s", route),
        )
    else:
        store.initialize(None)

    # ------------------------------------------------------------------
    # 5. Evaluate the requested paths
    # ------------------------------------------------------------------
    gate = engine["access_gate"]
    try:
        for path in paths:
            decision = gate.check(path, required_role=required_role)
            target = f" -> {decision.target}" if decision.target else ""
            print(f"{path}: {decision.outcome}{target} ({decision.reason})")
    finally:
        store.detach()
        db.close()
        logger.info("CondoGuard shut down.")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)

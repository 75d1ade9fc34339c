"""
Health check module for mynotes.

Reports system status across all components.
"""

import asyncio
import os

from mynotes.config import DB_NAME, get_notes_home, get_session_path, load_config


async def _database_stats() -> dict:
    from mynotes.db import Database

    db = Database()
    await db.open()
    try:
        return await db.stats()
    finally:
        await db.close()


def check_database() -> tuple[str, str]:
    """Check database status."""
    db_path = get_notes_home() / DB_NAME
    if not db_path.exists():
        return "-", "Not created yet"

    try:
        stats = asyncio.run(_database_stats())
        return "✓", f"OK ({stats['total_users']} users, {stats['total_notes']} notes)"
    except Exception as e:
        return "✗", f"Error: {e}"


def check_auth() -> tuple[str, str]:
    """Check identity provider configuration."""
    config = load_config()
    auth_config = config.get("auth", {})
    provider = auth_config.get("provider", "firebase")

    if provider != "firebase":
        return "✗", f"Unknown provider: {provider}"

    api_key = auth_config.get("api_key") or os.environ.get("MYNOTES_FIREBASE_API_KEY")
    if not api_key:
        return "✗", "No API key"
    return "✓", "OK (Firebase)"


def check_session() -> tuple[str, str]:
    """Check the signed-in user."""
    from mynotes.auth import load_session

    if not get_session_path().exists():
        return "-", "Not signed in"

    user = load_session()
    if user is None:
        return "✗", "Unreadable session"
    if not user.is_email_verified:
        return "!", f"{user.email} (email not verified)"
    return "✓", f"OK ({user.email})"


def run_health_check() -> dict[str, tuple[str, str]]:
    """Run all health checks."""
    return {
        "Database": check_database(),
        "Auth": check_auth(),
        "Session": check_session(),
    }


def format_health_report(checks: dict[str, tuple[str, str]]) -> str:
    """Format health check results."""
    lines = ["mynotes Health Check", "-" * 40]

    for name, (status, message) in checks.items():
        lines.append(f"{status} {name}: {message}")

    return "\n".join(lines)

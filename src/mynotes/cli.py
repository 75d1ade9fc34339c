"""
CLI for mynotes.

Minimal CLI using stdlib argument handling.
Subcommands are imported lazily to keep startup fast.

Usage:
    mynotes login you@example.com   # Sign in
    mynotes new "your note here"    # Create a note
    mynotes list                    # List your notes
    mynotes --help                  # Show help
"""

import asyncio
import logging
import sys


def print_help() -> None:
    """Print help message."""
    print("""mynotes - local notes with a cloud identity

Account:
    mynotes register <email>      Create an account (sends a verification email)
    mynotes login <email>         Sign in
    mynotes verify [--check]      Resend the verification email (or re-check status)
    mynotes whoami                Show the signed-in user
    mynotes logout [-y]           Sign out

Notes:
    mynotes list                  List your notes
    mynotes new [text]            Create a note
    mynotes show <id>             Show a note
    mynotes edit <id> <text>      Replace a note's text
    mynotes rm <id> [-y]          Delete a note
    mynotes purge [-y]            Delete every note in the database

Other:
    mynotes stats                 Show database statistics
    mynotes health                Check configuration and storage

Options:
    mynotes --help, -h            Show this help
    mynotes --version, -v         Show version

Passwords are prompted for, or read from MYNOTES_PASSWORD.""")


def print_version() -> None:
    """Print version."""
    from mynotes import __version__
    print(f"mynotes {__version__}")


def setup_logging() -> None:
    """Configure logging from config.toml ([logging] level)."""
    from mynotes.config import load_config

    level = load_config().get("logging", {}).get("level", "WARNING")
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, str(level).upper(), logging.WARNING),
    )


def confirm(prompt: str, args: list[str]) -> bool:
    """Ask a yes/no question unless -y/--yes was given."""
    if "-y" in args or "--yes" in args:
        return True
    try:
        answer = input(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def read_password() -> str:
    """Read the password from MYNOTES_PASSWORD or prompt for it."""
    import getpass
    import os

    return os.environ.get("MYNOTES_PASSWORD") or getpass.getpass("Password: ")


def session_email() -> str:
    """Email of the signed-in user. Raises UserNotLoggedInError if none."""
    from mynotes.auth import UserNotLoggedInError, load_session

    user = load_session()
    if user is None:
        raise UserNotLoggedInError("Not logged in. Run: mynotes login <email>")
    return user.email


def format_note(note, width: int = 60) -> str:
    """One-line summary of a note."""
    first_line = note.text.strip().split("\n", 1)[0] if note.text.strip() else "(empty)"
    if len(first_line) > width:
        first_line = first_line[:width - 3] + "..."
    marker = " " if note.is_synced_with_cloud else "*"
    return f"{note.id:>5} {marker} {first_line}"


async def owned_note(service, user, note_id: int):
    """Get a note, treating other users' notes as missing."""
    from mynotes.exceptions import NoteNotFoundError

    note = await service.get_note(note_id)
    if note.user_id != user.id:
        raise NoteNotFoundError(f"Note not found: {note_id}")
    return note


def parse_note_id(args: list[str], usage: str) -> int | None:
    """Parse the first argument as a note id, printing usage on failure."""
    if not args or not args[0].isdigit():
        print(f"Usage: {usage}", file=sys.stderr)
        return None
    return int(args[0])


# Account commands

def cmd_register(args: list[str]) -> int:
    """Create an account and send a verification email."""
    from mynotes.auth import get_auth_provider

    if not args:
        print("Usage: mynotes register <email>", file=sys.stderr)
        return 1

    async def run() -> str:
        auth = get_auth_provider()
        user = await auth.register(args[0], read_password())
        await auth.send_email_verification()
        return user.email

    try:
        email = asyncio.run(run())
        print(f"Registered: {email}")
        print("Verification email sent. Open the link, then run: mynotes verify --check")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_login(args: list[str]) -> int:
    """Sign in."""
    from mynotes.auth import get_auth_provider

    if not args:
        print("Usage: mynotes login <email>", file=sys.stderr)
        return 1

    async def run():
        auth = get_auth_provider()
        return await auth.login(args[0], read_password())

    try:
        user = asyncio.run(run())
        print(f"Logged in: {user.email}")
        if not user.is_email_verified:
            print("Email not verified yet. Run: mynotes verify")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_verify(args: list[str]) -> int:
    """Resend the verification email, or re-check verification status."""
    from mynotes.auth import get_auth_provider

    async def run() -> str:
        auth = get_auth_provider()
        if "--check" in args:
            user = await auth.refresh()
            return "Email verified." if user.is_email_verified else "Email not verified yet."
        await auth.send_email_verification()
        return "Verification email sent."

    try:
        print(asyncio.run(run()))
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_whoami() -> int:
    """Show the signed-in user."""
    from mynotes.auth import load_session

    user = load_session()
    if user is None:
        print("Not logged in.")
        return 1

    verified = "verified" if user.is_email_verified else "not verified"
    print(f"{user.email} ({verified})")
    return 0


def cmd_logout(args: list[str]) -> int:
    """Sign out after confirmation."""
    from mynotes.auth import clear_session, load_session

    if load_session() is None:
        print("Error: Not logged in", file=sys.stderr)
        return 1

    if not confirm("Are you sure you want to log out?", args):
        print("Cancelled.")
        return 0

    clear_session()
    print("Logged out.")
    return 0


# Note commands

def cmd_list() -> int:
    """List the signed-in user's notes."""
    from mynotes.notes_service import NotesService

    async def run() -> list:
        async with NotesService() as service:
            await service.get_or_create_user(session_email())
            async with service.all_notes() as notes:
                return await anext(notes)

    try:
        notes = asyncio.run(run())
        if not notes:
            print("No notes yet. Create one with: mynotes new \"text\"")
            return 0
        for note in notes:
            print(format_note(note))
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_new(args: list[str]) -> int:
    """Create a note, optionally with text."""
    from mynotes.notes_service import NotesService

    text = " ".join(args)

    async def run():
        async with NotesService() as service:
            user = await service.get_or_create_user(session_email())
            note = await service.create_note(user)
            if text.strip():
                note = await service.update_note(note, text)
            return note

    try:
        note = asyncio.run(run())
        print(f"Created: {note.id}")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_show(args: list[str]) -> int:
    """Show a single note."""
    from mynotes.notes_service import NotesService

    note_id = parse_note_id(args, "mynotes show <id>")
    if note_id is None:
        return 1

    async def run():
        async with NotesService() as service:
            user = await service.get_or_create_user(session_email())
            return await owned_note(service, user, note_id)

    try:
        note = asyncio.run(run())
        synced = "synced" if note.is_synced_with_cloud else "local changes"
        print(f"Note {note.id} ({synced})")
        print("-" * 30)
        print(note.text)
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_edit(args: list[str]) -> int:
    """Replace a note's text."""
    from mynotes.notes_service import NotesService

    note_id = parse_note_id(args, "mynotes edit <id> <text>")
    if note_id is None:
        return 1
    text = " ".join(args[1:])

    async def run():
        async with NotesService() as service:
            user = await service.get_or_create_user(session_email())
            note = await owned_note(service, user, note_id)
            return await service.update_note(note, text)

    try:
        note = asyncio.run(run())
        print(f"Updated: {note.id}")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_rm(args: list[str]) -> int:
    """Delete a note after confirmation."""
    from mynotes.notes_service import NotesService

    note_id = parse_note_id(args, "mynotes rm <id> [-y]")
    if note_id is None:
        return 1

    if not confirm("Are you sure you want to delete this note?", args):
        print("Cancelled.")
        return 0

    async def run() -> None:
        async with NotesService() as service:
            user = await service.get_or_create_user(session_email())
            await owned_note(service, user, note_id)
            await service.delete_note(note_id)

    try:
        asyncio.run(run())
        print(f"Deleted: {note_id}")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_purge(args: list[str]) -> int:
    """Delete every note in the database."""
    from mynotes.notes_service import NotesService

    if not confirm("Delete ALL notes for every user?", args):
        print("Cancelled.")
        return 0

    async def run() -> int:
        async with NotesService() as service:
            return await service.delete_all_notes()

    try:
        count = asyncio.run(run())
        print(f"Deleted {count} notes.")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


# Other commands

def cmd_stats() -> int:
    """Show database statistics."""
    from mynotes.db import Database

    async def run() -> dict:
        db = Database()
        await db.open()
        try:
            return await db.stats()
        finally:
            await db.close()

    try:
        stats = asyncio.run(run())

        print("mynotes Statistics")
        print("-" * 30)
        print(f"Users: {stats['total_users']}")
        print(f"Notes: {stats['total_notes']}")
        print(f"Not synced: {stats['unsynced_notes']}")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_health() -> int:
    """Show health report."""
    from mynotes.health import format_health_report, run_health_check

    checks = run_health_check()
    print(format_health_report(checks))
    return 1 if any(status == "✗" for status, _ in checks.values()) else 0


def main() -> int:
    """Main entry point."""
    args = sys.argv[1:]

    if not args:
        print_help()
        return 0

    first_arg, rest = args[0], args[1:]

    if first_arg in ("--help", "-h", "help"):
        print_help()
        return 0

    if first_arg in ("--version", "-v", "version"):
        print_version()
        return 0

    setup_logging()

    commands = {
        "register": lambda: cmd_register(rest),
        "login": lambda: cmd_login(rest),
        "verify": lambda: cmd_verify(rest),
        "whoami": cmd_whoami,
        "logout": lambda: cmd_logout(rest),
        "list": cmd_list,
        "new": lambda: cmd_new(rest),
        "show": lambda: cmd_show(rest),
        "edit": lambda: cmd_edit(rest),
        "rm": lambda: cmd_rm(rest),
        "purge": lambda: cmd_purge(rest),
        "stats": cmd_stats,
        "health": cmd_health,
    }

    command = commands.get(first_arg)
    if command is None:
        print(f"Unknown command: {first_arg}", file=sys.stderr)
        print("Run 'mynotes --help' for usage.", file=sys.stderr)
        return 1

    return command()


if __name__ == "__main__":
    sys.exit(main())

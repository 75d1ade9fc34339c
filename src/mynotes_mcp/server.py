"""
MCP Server for mynotes.

Exposes the signed-in user's notes as tools.
"""

import logging
import sys
from typing import Any, Awaitable, Callable

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from mynotes.auth import UserNotLoggedInError, load_session
from mynotes.exceptions import NoteNotFoundError
from mynotes.models import Note, User
from mynotes.notes_service import NotesService

logger = logging.getLogger(__name__)

ToolHandler = Callable[[NotesService, dict], Awaitable[list[TextContent]]]


def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="notes_list",
            description="List the signed-in user's notes. Unsynced notes are marked with *.",
            inputSchema={
                "type": "object",
                "properties": {},
            },
        ),
        Tool(
            name="notes_create",
            description="Create a note for the signed-in user, optionally with text.",
            inputSchema={
                "type": "object",
                "properties": {
                    "text": {
                        "type": "string",
                        "description": "Initial note text (optional)",
                    },
                },
            },
        ),
        Tool(
            name="notes_get",
            description="Get the full text of a note.",
            inputSchema={
                "type": "object",
                "properties": {
                    "note_id": {
                        "type": "integer",
                        "description": "The ID of the note",
                    },
                },
                "required": ["note_id"],
            },
        ),
        Tool(
            name="notes_update",
            description="Replace the text of a note.",
            inputSchema={
                "type": "object",
                "properties": {
                    "note_id": {
                        "type": "integer",
                        "description": "The ID of the note",
                    },
                    "text": {
                        "type": "string",
                        "description": "The new text",
                    },
                },
                "required": ["note_id", "text"],
            },
        ),
        Tool(
            name="notes_delete",
            description="Delete a note.",
            inputSchema={
                "type": "object",
                "properties": {
                    "note_id": {
                        "type": "integer",
                        "description": "The ID of the note to delete",
                    },
                },
                "required": ["note_id"],
            },
        ),
    ]


def text_result(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]


async def current_user(service: NotesService) -> User:
    """Make the session user active in service and return it."""
    session = load_session()
    if session is None:
        raise UserNotLoggedInError("Not logged in. Run: mynotes login <email>")
    return await service.get_or_create_user(session.email)


async def owned_note(service: NotesService, user: User, note_id: int) -> Note:
    note = await service.get_note(note_id)
    if note.user_id != user.id:
        raise NoteNotFoundError(f"Note not found: {note_id}")
    return note


async def tool_list(service: NotesService, args: dict) -> list[TextContent]:
    """List notes."""
    await current_user(service)

    async with service.all_notes() as snapshots:
        notes = await anext(snapshots)

    if not notes:
        return text_result("No notes.")

    lines = []
    for note in notes:
        marker = "*" if not note.is_synced_with_cloud else " "
        first_line = note.text.strip().split("\n", 1)[0][:60] or "(empty)"
        lines.append(f"  {note.id:>5} {marker} {first_line}")

    return text_result("\n".join(lines))


async def tool_create(service: NotesService, args: dict) -> list[TextContent]:
    """Create a note."""
    user = await current_user(service)
    text = args.get("text", "")

    note = await service.create_note(user)
    if text.strip():
        note = await service.update_note(note, text)

    return text_result(f"Created: {note.id}")


async def tool_get(service: NotesService, args: dict) -> list[TextContent]:
    """Get a note."""
    note_id = args.get("note_id")
    if note_id is None:
        return text_result("Error: No note_id provided")

    user = await current_user(service)
    note = await owned_note(service, user, int(note_id))
    return text_result(note.text)


async def tool_update(service: NotesService, args: dict) -> list[TextContent]:
    """Update a note."""
    note_id = args.get("note_id")
    if note_id is None:
        return text_result("Error: No note_id provided")

    user = await current_user(service)
    note = await owned_note(service, user, int(note_id))
    note = await service.update_note(note, args.get("text", ""))
    return text_result(f"Updated: {note.id}")


async def tool_delete(service: NotesService, args: dict) -> list[TextContent]:
    """Delete a note."""
    note_id = args.get("note_id")
    if note_id is None:
        return text_result("Error: No note_id provided")

    user = await current_user(service)
    await owned_note(service, user, int(note_id))
    await service.delete_note(int(note_id))
    return text_result(f"Deleted: {note_id}")


TOOLS: dict[str, ToolHandler] = {
    "notes_list": tool_list,
    "notes_create": tool_create,
    "notes_get": tool_get,
    "notes_update": tool_update,
    "notes_delete": tool_delete,
}


async def call_tool(service: NotesService, name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls."""
    handler = TOOLS.get(name)
    if handler is None:
        return text_result(f"Unknown tool: {name}")
    try:
        return await handler(service, arguments or {})
    except Exception as e:
        logger.warning(f"{name} failed: {e}")
        return text_result(f"Error: {e}")


def build_server(service: NotesService) -> Server:
    """Create an MCP server bound to service."""
    server = Server("mynotes")

    @server.list_tools()
    async def handle_list_tools() -> list[Tool]:
        return list_tools()

    @server.call_tool()
    async def handle_call_tool(name: str, arguments: dict) -> list[TextContent]:
        return await call_tool(service, name, arguments)

    return server


async def main():
    """Run the MCP server."""
    # stdout carries the protocol
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
        stream=sys.stderr,
    )

    async with NotesService() as service:
        server = build_server(service)
        async with stdio_server() as (read_stream, write_stream):
            await server.run(read_stream, write_stream, server.create_initialization_options())


def run() -> None:
    """Console script entry point."""
    import asyncio
    asyncio.run(main())


if __name__ == "__main__":
    run()

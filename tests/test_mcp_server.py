from mynotes_mcp.server import build_server, call_tool, list_tools


def text_of(result) -> str:
    return "\n".join(content.text for content in result)


async def test_tools_are_listed():
    names = {tool.name for tool in list_tools()}
    assert names == {"notes_list", "notes_create", "notes_get", "notes_update", "notes_delete"}


async def test_requires_session(notes_home, service):
    result = await call_tool(service, "notes_list", {})
    assert text_of(result).startswith("Error: Not logged in")


async def test_note_tools(signed_in, service):
    assert text_of(await call_tool(service, "notes_list", {})) == "No notes."

    assert text_of(await call_tool(service, "notes_create", {"text": "hello"})) == "Created: 1"
    assert text_of(await call_tool(service, "notes_get", {"note_id": 1})) == "hello"

    assert text_of(await call_tool(service, "notes_update", {"note_id": 1, "text": "bye"})) == "Updated: 1"
    assert "bye" in text_of(await call_tool(service, "notes_list", {}))

    assert text_of(await call_tool(service, "notes_delete", {"note_id": 1})) == "Deleted: 1"
    assert text_of(await call_tool(service, "notes_get", {"note_id": 1})).startswith("Error:")


async def test_other_users_notes_are_hidden(signed_in, service):
    other = await service.get_or_create_user("other@test.com", set_as_current=False)
    note = await service.create_note(other)

    result = await call_tool(service, "notes_get", {"note_id": note.id})
    assert text_of(result) == f"Error: Note not found: {note.id}"
    assert text_of(await call_tool(service, "notes_list", {})) == "No notes."


async def test_missing_arguments_and_unknown_tool(signed_in, service):
    assert text_of(await call_tool(service, "notes_get", {})) == "Error: No note_id provided"
    assert text_of(await call_tool(service, "nope", {})) == "Unknown tool: nope"


def test_build_server(tmp_path):
    from mynotes.db import Database
    from mynotes.notes_service import NotesService

    server = build_server(NotesService(Database(tmp_path / "notes.db")))
    assert server.name == "mynotes"

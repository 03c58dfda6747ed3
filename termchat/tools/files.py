"""File tools backed by a ``FileSystem`` collaborator."""

from __future__ import annotations

from termchat.backends.base import CollaboratorError, FileSystem
from termchat.tools.base import Tool, ToolContext, ToolName
from termchat.types import ErrorCode, ToolResult

_PATH_PROPERTY = {
    "type": "string",
    "description": "File path (relative to the workspace or absolute)",
}

_MAX_READ_LINES = 1000


def _failed(prefix: str, exc: CollaboratorError) -> ToolResult:
    return ToolResult.fail(f"{prefix}: {exc}", ErrorCode.COLLABORATOR_ERROR)


class _FileTool(Tool):
    def __init__(self, filesystem: FileSystem) -> None:
        self._fs = filesystem


class CreateFileTool(_FileTool):
    @property
    def name(self) -> str:
        return ToolName.CREATE_FILE.value

    @property
    def description(self) -> str:
        return "Create a new file with the given content (overwrites an existing file)."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": _PATH_PROPERTY,
                "content": {"type": "string", "description": "File content to write"},
            },
            "required": ["path", "content"],
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        path = kwargs["path"]
        try:
            size = await self._fs.create(path, kwargs["content"])
        except CollaboratorError as e:
            return _failed("Failed to create file", e)
        return ToolResult.ok(
            message=f"File created successfully at {path}",
            path=path,
            size=size,
        )


class ReadFileTool(_FileTool):
    @property
    def name(self) -> str:
        return ToolName.READ_FILE.value

    @property
    def description(self) -> str:
        return "Read the contents of a file, optionally a range of lines."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": _PATH_PROPERTY,
                "lines": {
                    "type": "integer",
                    "description": "Number of lines to read (default: all, max: 1000)",
                },
                "start_line": {
                    "type": "integer",
                    "description": "Starting line number (1-based, default: 1)",
                },
            },
            "required": ["path"],
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        path = kwargs["path"]
        try:
            content = await self._fs.read(path)
        except CollaboratorError as e:
            return _failed("Failed to read file", e)

        all_lines = content.split("\n")
        total = len(all_lines)
        lines = kwargs.get("lines")
        start_line = kwargs.get("start_line", 1)
        if lines is None and start_line == 1:
            return ToolResult.ok(content=content, path=path, total_lines=total)

        start = max(1, int(start_line))
        if start > total:
            return ToolResult.fail(
                f"start_line {start} is past the end of the file ({total} lines)",
                ErrorCode.VALIDATION_ERROR,
            )
        count = min(int(lines), _MAX_READ_LINES) if lines is not None else total
        count = max(1, count)
        end = min(start - 1 + count, total)
        return ToolResult.ok(
            content="\n".join(all_lines[start - 1:end]),
            path=path,
            lines_shown=f"{start}-{end}",
            total_lines=total,
        )


class UpdateFileTool(_FileTool):
    @property
    def name(self) -> str:
        return ToolName.UPDATE_FILE.value

    @property
    def description(self) -> str:
        return "Replace the entire content of a file."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": _PATH_PROPERTY,
                "content": {"type": "string", "description": "New file content"},
            },
            "required": ["path", "content"],
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        path = kwargs["path"]
        try:
            size = await self._fs.update(path, kwargs["content"])
        except CollaboratorError as e:
            return _failed("Failed to update file", e)
        return ToolResult.ok(message="File updated successfully", path=path, new_size=size)


class AppendToFileTool(_FileTool):
    @property
    def name(self) -> str:
        return ToolName.APPEND_TO_FILE.value

    @property
    def description(self) -> str:
        return "Append content to the end of a file, creating it if it does not exist."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": _PATH_PROPERTY,
                "content": {"type": "string", "description": "Content to append"},
            },
            "required": ["path", "content"],
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        path = kwargs["path"]
        content = kwargs["content"]
        try:
            if not await self._fs.exists(path):
                size = await self._fs.create(path, content)
                return ToolResult.ok(
                    message="File created with appended content", path=path, size=size
                )
            appended = await self._fs.append(path, content)
        except CollaboratorError as e:
            return _failed("Failed to append to file", e)
        return ToolResult.ok(
            message="Content appended successfully", path=path, appended_bytes=appended
        )


class DeleteFileTool(_FileTool):
    @property
    def name(self) -> str:
        return ToolName.DELETE_FILE.value

    @property
    def description(self) -> str:
        return "Delete a file from the filesystem."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {"path": _PATH_PROPERTY},
            "required": ["path"],
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        path = kwargs["path"]
        try:
            await self._fs.delete(path)
        except CollaboratorError as e:
            return _failed("Failed to delete file", e)
        return ToolResult.ok(message="File deleted successfully", path=path)


class FindAndReplaceTool(_FileTool):
    @property
    def name(self) -> str:
        return ToolName.FIND_AND_REPLACE_IN_FILE.value

    @property
    def description(self) -> str:
        return "Replace literal occurrences of a text in a file."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": _PATH_PROPERTY,
                "search_text": {
                    "type": "string",
                    "description": "Exact text to find and replace (literal match)",
                },
                "replace_text": {"type": "string", "description": "Text to replace it with"},
                "max_replacements": {
                    "type": "integer",
                    "description": "Maximum number of replacements to make (default: all)",
                },
            },
            "required": ["path", "search_text", "replace_text"],
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        path = kwargs["path"]
        search = kwargs["search_text"]
        replace = kwargs["replace_text"]
        if not search:
            return ToolResult.fail("search_text must not be empty", ErrorCode.VALIDATION_ERROR)
        if not await self._fs.exists(path):
            return ToolResult.fail(f"File not found: {path}", ErrorCode.COLLABORATOR_ERROR)

        try:
            content = await self._fs.read(path)
            found = content.count(search)
            if found == 0:
                return ToolResult.ok(
                    message=f"No occurrences of '{search}' found in {path}",
                    replacements_made=0,
                )
            limit = kwargs.get("max_replacements")
            made = min(found, limit) if limit is not None and limit > 0 else found
            await self._fs.update(path, content.replace(search, replace, made))
        except CollaboratorError as e:
            return _failed("Error processing file", e)
        return ToolResult.ok(
            message=f"Successfully replaced {made} occurrence(s) in {path}",
            replacements_made=made,
        )


class ListFilesTool(_FileTool):
    @property
    def name(self) -> str:
        return ToolName.LIST_FILES.value

    @property
    def description(self) -> str:
        return "List files and directories in a specified path."

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "Directory path to list (default: current directory)",
                },
                "recursive": {
                    "type": "boolean",
                    "description": "Whether to list files recursively (default: false)",
                },
                "max_depth": {
                    "type": "integer",
                    "description": "Maximum depth for recursive listing (default: 3)",
                },
                "show_hidden": {
                    "type": "boolean",
                    "description": "Whether to show hidden files (default: false)",
                },
            },
        }

    async def execute(self, context: ToolContext, **kwargs) -> ToolResult:
        path = kwargs.get("path", ".")
        try:
            entries = await self._fs.list(
                path,
                recursive=kwargs.get("recursive", False),
                max_depth=kwargs.get("max_depth", 3),
                show_hidden=kwargs.get("show_hidden", False),
            )
        except CollaboratorError as e:
            return _failed("Failed to list directory", e)
        return ToolResult.ok(
            path=path,
            files=[e.to_dict() for e in entries],
            count=len(entries),
        )

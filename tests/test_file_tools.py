"""Tests for the file tools and the local file-system backend."""

from __future__ import annotations

import asyncio
import threading

import pytest

from termchat.backends.local import LocalFileSystem
from termchat.errors import CollaboratorError
from termchat.tools.base import ToolContext
from termchat.tools.files import (
    AppendToFileTool,
    CreateFileTool,
    DeleteFileTool,
    FindAndReplaceTool,
    ListFilesTool,
    ReadFileTool,
    UpdateFileTool,
)


@pytest.fixture
def fs(tmp_path):
    return LocalFileSystem(tmp_path)


@pytest.fixture
def ctx():
    return ToolContext(session_id="chat_test")


class TestCreateAndRead:
    async def test_create_then_read(self, fs, ctx, tmp_path):
        result = await CreateFileTool(fs).execute(ctx, path="notes/a.txt", content="one\ntwo")
        assert result.success
        assert result.data["size"] == 7
        assert (tmp_path / "notes" / "a.txt").read_text() == "one\ntwo"

        read = await ReadFileTool(fs).execute(ctx, path="notes/a.txt")
        assert read.data["content"] == "one\ntwo"
        assert read.data["total_lines"] == 2

    async def test_read_missing_file(self, fs, ctx):
        result = await ReadFileTool(fs).execute(ctx, path="missing.txt")
        assert not result.success
        assert "File not found: missing.txt" in result.error

    async def test_read_line_range(self, fs, ctx, tmp_path):
        (tmp_path / "f.txt").write_text("\n".join(f"line{i}" for i in range(1, 11)))
        result = await ReadFileTool(fs).execute(ctx, path="f.txt", start_line=3, lines=2)
        assert result.data["content"] == "line3\nline4"
        assert result.data["lines_shown"] == "3-4"
        assert result.data["total_lines"] == 10

    async def test_read_start_past_end(self, fs, ctx, tmp_path):
        (tmp_path / "f.txt").write_text("a\nb")
        result = await ReadFileTool(fs).execute(ctx, path="f.txt", start_line=10)
        assert not result.success
        assert "past the end" in result.error


class TestModify:
    async def test_update(self, fs, ctx, tmp_path):
        (tmp_path / "f.txt").write_text("old")
        result = await UpdateFileTool(fs).execute(ctx, path="f.txt", content="brand new")
        assert result.data["new_size"] == 9
        assert (tmp_path / "f.txt").read_text() == "brand new"

    async def test_append_existing(self, fs, ctx, tmp_path):
        (tmp_path / "f.txt").write_text("a")
        result = await AppendToFileTool(fs).execute(ctx, path="f.txt", content="b")
        assert result.data["appended_bytes"] == 1
        assert (tmp_path / "f.txt").read_text() == "ab"

    async def test_append_creates_missing(self, fs, ctx, tmp_path):
        result = await AppendToFileTool(fs).execute(ctx, path="new.txt", content="hi")
        assert result.success
        assert result.data["message"] == "File created with appended content"
        assert (tmp_path / "new.txt").read_text() == "hi"

    async def test_delete(self, fs, ctx, tmp_path):
        (tmp_path / "f.txt").write_text("x")
        result = await DeleteFileTool(fs).execute(ctx, path="f.txt")
        assert result.success
        assert not (tmp_path / "f.txt").exists()

    async def test_delete_missing(self, fs, ctx):
        result = await DeleteFileTool(fs).execute(ctx, path="ghost.txt")
        assert not result.success
        assert "File not found" in result.error

    async def test_delete_directory_refused(self, fs, ctx, tmp_path):
        (tmp_path / "d").mkdir()
        result = await DeleteFileTool(fs).execute(ctx, path="d")
        assert not result.success
        assert "Is a directory" in result.error


class TestFindAndReplace:
    async def test_replace_all(self, fs, ctx, tmp_path):
        (tmp_path / "f.txt").write_text("a-a-a")
        result = await FindAndReplaceTool(fs).execute(
            ctx, path="f.txt", search_text="a", replace_text="b"
        )
        assert result.data["replacements_made"] == 3
        assert (tmp_path / "f.txt").read_text() == "b-b-b"

    async def test_replace_limited(self, fs, ctx, tmp_path):
        (tmp_path / "f.txt").write_text("a-a-a")
        result = await FindAndReplaceTool(fs).execute(
            ctx, path="f.txt", search_text="a", replace_text="b", max_replacements=2
        )
        assert result.data["replacements_made"] == 2
        assert (tmp_path / "f.txt").read_text() == "b-b-a"

    async def test_no_occurrences(self, fs, ctx, tmp_path):
        (tmp_path / "f.txt").write_text("abc")
        result = await FindAndReplaceTool(fs).execute(
            ctx, path="f.txt", search_text="zzz", replace_text="y"
        )
        assert result.success
        assert result.data["replacements_made"] == 0

    async def test_missing_file(self, fs, ctx):
        result = await FindAndReplaceTool(fs).execute(
            ctx, path="nope.txt", search_text="a", replace_text="b"
        )
        assert result.error == "File not found: nope.txt"


class TestListFiles:
    async def test_flat_listing_hides_dotfiles(self, fs, ctx, tmp_path):
        (tmp_path / "b.txt").write_text("x")
        (tmp_path / ".hidden").write_text("x")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "inner.txt").write_text("x")

        result = await ListFilesTool(fs).execute(ctx, path=".")
        names = [f["name"] for f in result.data["files"]]
        assert names == ["sub", "b.txt"] or names == ["b.txt", "sub"]
        assert ".hidden" not in names
        assert result.data["count"] == 2

    async def test_recursive_listing(self, fs, ctx, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "inner.txt").write_text("x")
        result = await ListFilesTool(fs).execute(ctx, path=".", recursive=True)
        names = {f["name"] for f in result.data["files"]}
        assert names == {"sub", "sub/inner.txt"}

    async def test_show_hidden(self, fs, ctx, tmp_path):
        (tmp_path / ".env").write_text("x")
        result = await ListFilesTool(fs).execute(ctx, path=".", show_hidden=True)
        assert [f["name"] for f in result.data["files"]] == [".env"]

    async def test_missing_directory(self, fs, ctx):
        result = await ListFilesTool(fs).execute(ctx, path="nowhere")
        assert result.to_payload() == {
            "success": False,
            "error": "Failed to list directory: No such directory: nowhere",
        }


class TestLocalFileSystem:
    def test_relative_paths_resolve_against_root(self, tmp_path):
        fs = LocalFileSystem(tmp_path)
        assert fs.resolve("a/b.txt") == tmp_path / "a" / "b.txt"

    def test_absolute_paths_kept(self, tmp_path):
        fs = LocalFileSystem(tmp_path / "root")
        target = tmp_path / "elsewhere.txt"
        assert fs.resolve(str(target)) == target

    async def test_list_not_a_directory(self, tmp_path):
        (tmp_path / "f.txt").write_text("x")
        with pytest.raises(CollaboratorError) as exc_info:
            await LocalFileSystem(tmp_path).list("f.txt")
        assert exc_info.value.code == "enotdir"


class TestOffEventLoop:
    async def test_recursive_listing_lets_other_tasks_run(self, ctx, tmp_path):
        release = threading.Event()
        ticks = []

        class GatedFileSystem(LocalFileSystem):
            def _list_sync(self, path, **kwargs):
                # only another task on the loop can set this
                assert release.wait(timeout=5), "event loop stalled during listing"
                return super()._list_sync(path, **kwargs)

        for i in range(3):
            (tmp_path / f"d{i}").mkdir()
            (tmp_path / f"d{i}" / "f.txt").write_text("x")

        async def ticker():
            for _ in range(3):
                await asyncio.sleep(0.005)
                ticks.append(1)
            release.set()

        tick_task = asyncio.create_task(ticker())
        result = await ListFilesTool(GatedFileSystem(tmp_path)).execute(
            ctx, path=".", recursive=True, max_depth=3
        )
        await tick_task

        assert result.success
        assert result.data["count"] == 6
        assert len(ticks) == 3

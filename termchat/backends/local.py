"""Local file-system backend."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path

from termchat.backends.base import CollaboratorError, FileEntry, FileSystem


def _reason(exc: OSError) -> str:
    return exc.strerror or str(exc)


class LocalFileSystem(FileSystem):
    """
    File system rooted at a workspace directory.

    Relative paths resolve against *root*; absolute and ``~`` paths are used
    as given, so this is not a sandbox.  Blocking ``pathlib`` work runs in a
    worker thread via ``asyncio.to_thread``.
    """

    def __init__(self, root: str | Path = ".") -> None:
        self.root = Path(root).expanduser()

    def resolve(self, path: str) -> Path:
        p = Path(path).expanduser()
        if not p.is_absolute():
            p = self.root / p
        return p

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self._exists_sync, path)

    async def create(self, path: str, content: str) -> int:
        return await asyncio.to_thread(self._create_sync, path, content)

    async def read(self, path: str) -> str:
        return await asyncio.to_thread(self._read_sync, path)

    async def update(self, path: str, content: str) -> int:
        return await asyncio.to_thread(self._update_sync, path, content)

    async def append(self, path: str, content: str) -> int:
        return await asyncio.to_thread(self._append_sync, path, content)

    async def delete(self, path: str) -> None:
        await asyncio.to_thread(self._delete_sync, path)

    async def list(
        self,
        path: str,
        *,
        recursive: bool = False,
        max_depth: int = 3,
        show_hidden: bool = False,
    ) -> list[FileEntry]:
        return await asyncio.to_thread(
            self._list_sync,
            path,
            recursive=recursive,
            max_depth=max_depth,
            show_hidden=show_hidden,
        )

    # -- blocking implementations -------------------------------------------

    def _exists_sync(self, path: str) -> bool:
        return self.resolve(path).exists()

    def _create_sync(self, path: str, content: str) -> int:
        p = self.resolve(path)
        data = content.encode("utf-8")
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_bytes(data)
        except OSError as exc:
            raise CollaboratorError(_reason(exc), code="write_failed") from exc
        return len(data)

    def _read_sync(self, path: str) -> str:
        p = self.resolve(path)
        try:
            return p.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError as exc:
            raise CollaboratorError(f"File not found: {path}", code="enoent") from exc
        except IsADirectoryError as exc:
            raise CollaboratorError(f"Is a directory: {path}", code="eisdir") from exc
        except OSError as exc:
            raise CollaboratorError(_reason(exc), code="read_failed") from exc

    def _update_sync(self, path: str, content: str) -> int:
        p = self.resolve(path)
        data = content.encode("utf-8")
        try:
            p.write_bytes(data)
        except OSError as exc:
            raise CollaboratorError(_reason(exc), code="write_failed") from exc
        return len(data)

    def _append_sync(self, path: str, content: str) -> int:
        p = self.resolve(path)
        data = content.encode("utf-8")
        try:
            with p.open("ab") as f:
                f.write(data)
        except OSError as exc:
            raise CollaboratorError(_reason(exc), code="write_failed") from exc
        return len(data)

    def _delete_sync(self, path: str) -> None:
        p = self.resolve(path)
        if p.is_dir():
            raise CollaboratorError(f"Is a directory: {path}", code="eisdir")
        try:
            p.unlink()
        except FileNotFoundError as exc:
            raise CollaboratorError(f"File not found: {path}", code="enoent") from exc
        except OSError as exc:
            raise CollaboratorError(_reason(exc), code="delete_failed") from exc

    def _list_sync(
        self,
        path: str,
        *,
        recursive: bool = False,
        max_depth: int = 3,
        show_hidden: bool = False,
    ) -> list[FileEntry]:
        base = self.resolve(path)
        if not base.exists():
            raise CollaboratorError(f"No such directory: {path}", code="enoent")
        if not base.is_dir():
            raise CollaboratorError(f"Not a directory: {path}", code="enotdir")

        depth_limit = max(1, max_depth) if recursive else 1
        entries: list[FileEntry] = []
        try:
            self._walk(base, base, 1, depth_limit, show_hidden, entries)
        except OSError as exc:
            raise CollaboratorError(_reason(exc), code="list_failed") from exc
        entries.sort(key=lambda e: (e.type, e.name))
        return entries

    def _walk(
        self,
        base: Path,
        current: Path,
        depth: int,
        depth_limit: int,
        show_hidden: bool,
        out: list[FileEntry],
    ) -> None:
        for child in current.iterdir():
            if not show_hidden and child.name.startswith("."):
                continue
            try:
                st = child.stat()
            except OSError:
                # broken symlink
                continue
            is_dir = child.is_dir()
            out.append(
                FileEntry(
                    name=child.relative_to(base).as_posix(),
                    type="directory" if is_dir else "file",
                    size=st.st_size,
                    modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc).isoformat(),
                )
            )
            if is_dir and depth < depth_limit:
                self._walk(base, child, depth + 1, depth_limit, show_hidden, out)

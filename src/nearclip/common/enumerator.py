"""
Expand selected paths into a files manifest

A selected file becomes one entry with an empty save path. A selected
directory becomes a dir entry (save path = its base name) followed by every
entry below it in lexical depth-first order. Save paths name the directory
an entry lands in on the receiving side, so a file's save path is its
parent directory, rooted at the selected directory's base name:

    /X          dir   X
    /X/a.txt    file  X
    /X/sub      dir   X/sub
    /X/sub/b    file  X/sub
"""
import os
import stat
import logging
import posixpath
from typing import Iterable, Iterator, List

from nearclip.common.errors import EnumerationError
from nearclip.common.protocol import PathInfo, PathType

logger = logging.getLogger(__name__)


def normalize_path(path: str) -> str:
    """Use forward slashes regardless of the source platform"""
    return str(path).replace('\\', '/')


def _walk(root: str, save_root: str) -> Iterator[PathInfo]:
    """Yield entries below `root` in lexical depth-first order, without following links"""
    with os.scandir(root) as it:
        entries = sorted(it, key=lambda e: e.name)

    for entry in entries:
        path = posixpath.join(root, entry.name)
        save_path = posixpath.join(save_root, entry.name)

        if entry.is_dir(follow_symlinks=False):
            yield PathInfo(type=PathType.DIR, path=path, save_path=save_path)
            yield from _walk(path, save_path)
        else:
            size = entry.stat(follow_symlinks=False).st_size
            # Files land in their parent directory; the name comes from `path`
            yield PathInfo(type=PathType.FILE, path=path, save_path=save_root, size=size)


def enumerate_paths(paths: Iterable[str]) -> List[PathInfo]:
    """
    Build the manifest for the given selection.

    Raises:
        EnumerationError: if any path cannot be stat'ed or walked; no
            partial manifest is returned
    """
    manifest: List[PathInfo] = []

    for raw in paths:
        path = normalize_path(raw)
        try:
            st = os.stat(path)
        except OSError as e:
            logger.error(f"stat file error: {e}")
            raise EnumerationError(f"stat {path}: {e.strerror or e}") from e

        if not stat.S_ISDIR(st.st_mode):
            manifest.append(PathInfo(type=PathType.FILE, path=path, size=st.st_size))
            continue

        top = path.rstrip('/') or path
        top_name = posixpath.basename(top) or top
        manifest.append(PathInfo(type=PathType.DIR, path=top, save_path=top_name))
        try:
            manifest.extend(_walk(top, top_name))
        except OSError as e:
            logger.error(f"walk file error: {e}")
            raise EnumerationError(f"walk {top}: {e.strerror or e}") from e

    return manifest

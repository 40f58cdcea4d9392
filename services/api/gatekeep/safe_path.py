"""Filesystem sandbox for untrusted, slug-style relative paths (e.g. css/box-model).

Two stages: a narrow lexical check on the untrusted part, then resolution under a
trusted root with a lexical containment check and a best-effort realpath check that
catches symlinks inside the root pointing outside it. Every rejection looks the same
to the caller; the reason is only logged at DEBUG.
"""
import logging
import os
import re

logger = logging.getLogger("gatekeep.safe_path")

_SEGMENT_RE = re.compile(r"[a-z0-9][a-z0-9-]*")


def _split_posix(value: str) -> list[str]:
    """Split on '/', dropping empty segments so repeated slashes collapse."""
    return [part for part in value.split("/") if part]


def is_safe_relative_path(value: str) -> bool:
    """
    True when value is a relative POSIX path made only of lowercase slug segments.
    Rejects absolute, drive-letter and UNC paths, backslashes, NUL, dot segments,
    whitespace and anything outside [a-z0-9-].
    """
    if not value or not isinstance(value, str):
        return False
    if "\x00" in value or "\\" in value or ":" in value:
        return False
    if value.startswith("/"):
        return False
    parts = _split_posix(value)
    if not parts:
        return False
    return all(
        _SEGMENT_RE.fullmatch(part) is not None and part not in (".", "..")
        for part in parts
    )


def _inside(root: str, candidate: str) -> bool:
    rel = os.path.relpath(candidate, root)
    if rel == os.curdir:
        return True
    return not (rel == os.pardir or rel.startswith(os.pardir + os.sep) or os.path.isabs(rel))


def _real_or(path: str) -> str:
    """
    Symlink-free form of path, resolving whatever prefix exists; the given path when
    resolution fails. Both sides go through the same resolution so a missing target
    under a symlinked root still compares like-for-like.
    """
    try:
        real = os.path.realpath(path)
    except (OSError, ValueError):
        return path
    return real if isinstance(real, str) and real else path


def resolve_within_root(root: str | os.PathLike, untrusted_path: str, *trusted_segments: str) -> str | None:
    """
    Resolve untrusted_path (plus server-controlled trailing segments such as a file name)
    to an absolute path under root, or None if it is unsafe or escapes root.

    The target need not exist; a missing path is checked lexically only.
    """
    if not is_safe_relative_path(untrusted_path):
        logger.debug("sandbox reject reason=malformed")
        return None

    root_resolved = os.path.abspath(os.fspath(root))
    candidate_resolved = os.path.normpath(
        os.path.join(root_resolved, *_split_posix(untrusted_path), *trusted_segments)
    )
    if not _inside(root_resolved, candidate_resolved):
        logger.debug("sandbox reject reason=traversal candidate=%s", candidate_resolved)
        return None

    root_real = _real_or(root_resolved)
    candidate_real = _real_or(candidate_resolved)
    if not _inside(root_real, candidate_real):
        logger.debug("sandbox reject reason=symlink_escape candidate=%s real=%s", candidate_resolved, candidate_real)
        return None

    return candidate_real

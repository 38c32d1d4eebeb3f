"""Security-first path resolution confined to a single root directory."""

from pathlib import Path

from drive.storage.errors import NotFound, PathViolation

DANGEROUS_PATTERNS: tuple[str, ...] = (
    "..",
    "%2e%2e",
    "%252e%252e",
    "/etc/",
    "/root/",
    "/home/",
    "\\",
    ":",
    "*",
    "?",
    '"',
    "<",
    ">",
    "|",
    "\0",
    "~",
    "$",
    "&",
    ";",
    "`",
    "'",
    "(",
    ")",
    "{",
    "}",
    "[",
    "]",
)

INVALID_NAME_CHARS: tuple[str, ...] = ("\0", "/", "\\")

MAX_NAME_LENGTH = 255


def is_hidden(name: str) -> bool:
    """Check if a name is hidden from listings and resolution.

    Args:
        name: Single path component.

    Returns:
        True if the name starts with a dot.
    """
    return name.startswith(".")


def _check_dangerous(raw: str) -> None:
    """Reject raw input containing any denylisted substring.

    Raises:
        PathViolation: If a dangerous pattern is present.
    """
    lowered = raw.lower()
    for pattern in DANGEROUS_PATTERNS:
        if pattern in lowered:
            shown = repr(pattern) if pattern == "\0" else pattern
            raise PathViolation(
                f"dangerous pattern detected: {shown}",
                debug=f"input={raw!r}",
            )


def _normalize(raw: str) -> str:
    return raw.replace("\\", "/").strip("/")


def _check_name(name: str) -> None:
    if any(ch in name for ch in INVALID_NAME_CHARS):
        raise PathViolation("invalid filename characters", debug=f"name={name!r}")


class PathResolver:
    """Validates caller-supplied relative paths against a root directory.

    Read-side resolution requires the target to exist and canonicalizes the
    full path, which defends against symlink escapes on existing entries.
    Write-side resolution only requires the parent to canonicalize within
    the root, since the target is usually about to be created.

    Attributes:
        root: Canonical absolute root directory.
    """

    def __init__(self, root: str | Path) -> None:
        """Initialize resolver.

        Args:
            root: Root directory all paths are confined to.
        """
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        """Canonical root directory."""
        return self._root

    def contains(self, path: Path) -> bool:
        """Check whether a canonical path is the root or below it.

        Args:
            path: Absolute canonical path.

        Returns:
            True if the path lies within the root.
        """
        return path == self._root or path.is_relative_to(self._root)

    def relative(self, path: Path) -> str:
        """Express an absolute path under the root as a relative path.

        Args:
            path: Absolute path within the root.

        Returns:
            '/' separated path without a leading slash, '' for the root.
        """
        rel = path.relative_to(self._root).as_posix()
        return "" if rel == "." else rel

    def resolve_for_read(self, relative_path: str) -> Path:
        """Resolve a path to an existing entry within the root.

        Args:
            relative_path: Caller-supplied path relative to the root.
                Empty (after trimming slashes) means the root itself.

        Returns:
            Canonical absolute path of the existing target.

        Raises:
            PathViolation: If the input is dangerous, escapes the root,
                or touches a hidden component.
            NotFound: If the target does not exist.
        """
        _check_dangerous(relative_path)

        normalized = _normalize(relative_path)
        if not normalized:
            return self._root

        canonical = (self._root / normalized).resolve()
        if not self.contains(canonical):
            raise PathViolation(
                "path escape attempt detected",
                debug=f"input={relative_path!r}",
            )

        if not canonical.exists():
            raise NotFound(
                "File or directory not found",
                debug=f"Path does not exist: {normalized}",
            )

        for component in canonical.relative_to(self._root).parts:
            if is_hidden(component):
                raise PathViolation(
                    "access to hidden files is not allowed",
                    debug=f"component={component!r}",
                )
            _check_name(component)

        return canonical

    def resolve_for_write(self, relative_path: str) -> Path:
        """Resolve a path that may not exist yet for creation or mutation.

        The returned path is the canonical parent joined with the final
        name, without dereferencing the final component itself.

        Args:
            relative_path: Caller-supplied path relative to the root.

        Returns:
            Absolute path whose parent lies within the root.

        Raises:
            PathViolation: If the input is empty, dangerous, escapes the
                root, or names a hidden or invalid file.
        """
        _check_dangerous(relative_path)

        normalized = _normalize(relative_path)
        if not normalized:
            raise PathViolation("path cannot be empty", debug=f"input={relative_path!r}")

        parts = [part for part in normalized.split("/") if part not in ("", ".")]
        if not parts:
            raise PathViolation("path cannot be empty", debug=f"input={relative_path!r}")

        name = parts[-1]
        for component in parts[:-1]:
            if is_hidden(component):
                raise PathViolation(
                    "access to hidden files is not allowed",
                    debug=f"component={component!r}",
                )

        if is_hidden(name):
            raise PathViolation("cannot create hidden files", debug=f"name={name!r}")
        if len(name) > MAX_NAME_LENGTH:
            raise PathViolation("filename too long", debug=f"length={len(name)}")
        _check_name(name)

        parent = self._root.joinpath(*parts[:-1]).resolve()
        if not self.contains(parent):
            raise PathViolation(
                "path escape attempt detected",
                debug=f"input={relative_path!r}",
            )

        target = parent / name
        if target.is_symlink() and not self.contains(target.resolve()):
            raise PathViolation(
                "path escape attempt detected",
                debug=f"symlink target outside root: {relative_path!r}",
            )

        return target

from pathlib import Path

REPO_MARKERS = ("pyproject.toml", ".git")


def find_repo_root(start: Path | None = None) -> Path:
    """Walk upwards from ``start`` until a folder containing a repo marker is found.

    Args:
        start: Optional starting path. Defaults to the location of this file.

    Returns:
        The repository root as a :class:`Path`, or the current working
        directory when running from an installed package.
    """
    p = (start or Path(__file__).resolve()).parent
    for candidate in [p, *p.parents]:
        if any((candidate / marker).exists() for marker in REPO_MARKERS):
            return candidate
    return Path.cwd()

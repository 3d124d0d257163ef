"""Catalog of directories that can be regenerated, used for cleanup hints."""

import os
from functools import lru_cache

from diskdive.models import Category
from diskdive.system import expand_path

CATEGORIES: dict[str, Category] = {
    # =========================================================================
    # Caches at well-known locations
    # =========================================================================
    "user_caches": Category(
        id="user_caches",
        name="User Caches",
        paths=["~/Library/Caches", "~/.cache"],
        description="Application caches rebuilt on demand",
    ),
    "npm_cache": Category(
        id="npm_cache",
        name="NPM Cache",
        paths=["~/.npm/_cacache", "~/.npm/_logs", "~/.tnpm/_cacache"],
        description="Cached npm packages and logs",
    ),
    "yarn_cache": Category(
        id="yarn_cache",
        name="Yarn / Bun / pnpm Stores",
        paths=["~/.yarn/cache", "~/.bun/install/cache", "~/Library/pnpm/store"],
        description="Package manager stores that re-download on install",
    ),
    "python_tooling": Category(
        id="python_tooling",
        name="Python Tooling Caches",
        paths=["~/.pyenv/cache", "~/.conda/pkgs", "~/anaconda3/pkgs", "~/miniconda3/pkgs"],
        description="Interpreter downloads and conda package tarballs",
    ),
    "cargo_cache": Category(
        id="cargo_cache",
        name="Cargo Caches",
        paths=["~/.cargo/registry/cache", "~/.cargo/git", "~/.rustup/downloads"],
        description="Downloaded crates and toolchains",
    ),
    "xcode_derived": Category(
        id="xcode_derived",
        name="Xcode Derived Data",
        paths=["~/Library/Developer/Xcode/DerivedData", "~/Library/Developer/CoreSimulator/Caches"],
        description="Build products and simulator caches",
    ),
    "logs": Category(
        id="logs",
        name="User Logs",
        paths=["~/Library/Logs"],
        description="Application log files",
    ),
    "trash": Category(
        id="trash",
        name="Trash",
        paths=["~/.Trash", "~/.local/share/Trash"],
        description="Files already moved to the trash",
    ),
    # =========================================================================
    # Developer artifacts found anywhere in a tree
    # =========================================================================
    "dev_artifacts": Category(
        id="dev_artifacts",
        name="Developer Artifacts",
        dir_names=[
            "node_modules",
            ".venv",
            "venv",
            "__pycache__",
            ".pytest_cache",
            ".mypy_cache",
            ".ruff_cache",
            ".tox",
            ".gradle",
            ".next",
            ".nuxt",
            ".turbo",
            ".parcel-cache",
            "DerivedData",
        ],
        description="Dependencies and build output that a project can regenerate",
    ),
}


@lru_cache(maxsize=1)
def _catalog_index() -> tuple[frozenset[str], frozenset[str]]:
    paths = frozenset(
        str(expand_path(p)).rstrip(os.sep) for cat in CATEGORIES.values() for p in cat.paths
    )
    names = frozenset(n for cat in CATEGORIES.values() for n in cat.dir_names)
    return paths, names


def is_cleanable_dir(path: str) -> bool:
    """Whether a directory is a cache or build artifact that can be regenerated."""
    if not path:
        return False
    paths, names = _catalog_index()
    normalized = path.rstrip(os.sep)
    return normalized in paths or os.path.basename(normalized) in names

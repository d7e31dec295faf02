import json
import os
from pathlib import Path
from typing import Any

from iohook_provision.errors import InstallRootError


def find_repo_root_dir_Path(start: Path | None = None) -> Path:
    """Returns the add-on's install root: the nearest directory holding a package.json.

    IOHOOK_ROOT, when set, wins over searching upwards from `start` (default: cwd).
    """
    if "IOHOOK_ROOT" in os.environ:
        return Path(os.environ["IOHOOK_ROOT"]).resolve()

    here = (start or Path.cwd()).resolve()
    for candidate in [here, *here.parents]:
        if (candidate / "package.json").is_file():
            return candidate
    raise InstallRootError(f"No package.json found in {here} or any parent directory")


def read_package_json(root: Path) -> dict[str, Any]:
    with open(root / "package.json", "r", encoding="utf-8") as f:
        return json.load(f)


def find_main_package_json(root: Path, max_levels: int = 4) -> Path | None:
    """Finds the package.json of the app that depends on us.

    When installed as a dependency we live in `<app>/node_modules/iohook`,
    so we look a few levels above our own root.
    """
    for level, parent in enumerate(root.parents):
        if level >= max_levels:
            break
        candidate = parent / "package.json"
        if candidate.is_file():
            return candidate
    return None

"""Creating a new project from a template repository."""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Sequence
from pathlib import Path

from .errors import CommandError, ConfigError

TEMPLATE_ENV_VAR = "ARBITER_TEMPLATE"
_TEMPLATE_PACKAGE_NAME = "arbiter_template"


def _template_location() -> str:
    location = os.environ.get(TEMPLATE_ENV_VAR)
    if not location:
        raise ConfigError(f"no project template configured; set {TEMPLATE_ENV_VAR}")
    return location


def _run(command: Sequence[str], capture: bool) -> subprocess.CompletedProcess:
    """Run a command, raising CommandError if it cannot be started."""
    try:
        return subprocess.run(list(command), capture_output=capture, check=False)
    except OSError as exc:
        raise CommandError(command, f"Failed to run {command[0]}: {exc}") from exc


def _report(completed: subprocess.CompletedProcess) -> str:
    """Print a captured command's output, raising CommandError on failure."""
    if completed.returncode != 0:
        err = (completed.stderr or b"").decode("utf-8", errors="replace")
        print(f"Command failed, error: {err}, is forge installed?")
        raise CommandError(completed.args, "Command failed", err)
    out = (completed.stdout or b"").decode("utf-8", errors="replace")
    print(f"Command output: {out}")
    return out


def init_project(name: str) -> None:
    """Clone the project template into `name`, enter it and set it up with forge.

    The working directory is left inside the new project.
    """
    clone = ["git", "clone", _template_location(), name]
    if _run(clone, capture=False).returncode != 0:
        print("Failed to clone the repository.")
        raise CommandError(clone, "Failed to clone the repository.")

    os.chdir(name)

    manifest = Path("Cargo.toml")
    manifest.write_text(
        manifest.read_text(encoding="utf-8").replace(_TEMPLATE_PACKAGE_NAME, name),
        encoding="utf-8",
    )

    _report(_run(["forge", "install"], capture=True))

    _report(
        _run(
            [
                "forge",
                "bind",
                "--revert-strings",
                "debug",
                "-b",
                "src/bindings/",
                "--module",
                "--overwrite",
            ],
            capture=True,
        )
    )
    print("Note: revert strings are on")
    print(f"Your Arbiter project '{name}' has been successfully initialized!")


def remove_git() -> None:
    """Remove the .git directory from the current working directory, if any."""
    shutil.rmtree(Path(".git"), ignore_errors=True)
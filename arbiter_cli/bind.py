"""Generating contract bindings with forge and pruning the ones not needed."""

from __future__ import annotations

import dataclasses
import os
import subprocess
from collections.abc import Iterable, Sequence
from pathlib import Path

from .config import ArbiterConfig, FoundryConfig
from .errors import CommandError, ConfigError
from .naming import safe_module_name

_SKIPPED_BINDING_STEMS = frozenset({"mod", "settings"})
_SHARED_TYPES = "shared_types"


def _start_forge(args: Sequence[str], cwd: Path | None = None) -> subprocess.CompletedProcess:
    """Run forge with the given arguments, raising CommandError if it cannot start."""
    command = ["forge", *args]
    try:
        return subprocess.run(command, capture_output=True, cwd=cwd, check=False)
    except OSError as exc:
        raise CommandError(command, f"Failed to run forge: {exc}") from exc


def _check_forge(completed: subprocess.CompletedProcess, hint: bool) -> str:
    """Report forge's output, raising CommandError if it exited unsuccessfully."""
    if completed.returncode != 0:
        err = (completed.stderr or b"").decode("utf-8", errors="replace")
        suffix = ", is forge installed?" if hint else ""
        print(f"Command failed, error: {err}{suffix}")
        raise CommandError(completed.args, "Command failed", err)
    out = (completed.stdout or b"").decode("utf-8", errors="replace")
    print(f"Command output: {out}")
    return out


def _bind_arguments(output_path: Path, target: Path | None = None) -> list[str]:
    args = ["bind", "--revert-strings", "debug", "-b", str(output_path)]
    if target is not None:
        args += ["-C", str(target)]
    return args + ["--module", "--overwrite", "--force"]


def is_test(file_path: str | os.PathLike[str]) -> bool:
    """Return False only when the file's extension is exactly "t"."""
    return Path(file_path).suffix != ".t"


def _contracts_directory(directory: Path) -> Path:
    if directory.name in ("src", "contracts"):
        return directory
    for candidate in (directory / "src", directory / "contracts"):
        if candidate.is_dir():
            return candidate
    return directory


def collect_contract_list(
    directory: str | os.PathLike[str], settings: ArbiterConfig
) -> tuple[list[str], Path]:
    """Collect module names for the contracts found in a directory.

    Returns the names, always starting with "shared_types", and the directory
    that was actually searched. Raises ValueError for a file whose stem is not
    a valid identifier.
    """
    directory = Path(directory)
    contracts = [_SHARED_TYPES]
    target = directory
    if directory.is_dir():
        target = _contracts_directory(directory)
        for path in sorted(target.iterdir()):
            if not path.is_file():
                continue
            stem = path.stem
            if not stem.isidentifier():
                raise ValueError(f"{stem!r} is not a valid identifier")
            name = safe_module_name(stem)
            test = is_test(path)
            if not settings.ignore_interfaces or (not name.startswith("i") and not test):
                contracts.append(name)
    return contracts, target


def _kept_line(line: str, contracts_to_keep: Iterable[str]) -> bool:
    stripped = line.strip()
    if stripped.startswith("//") or stripped.startswith("#"):
        return True
    if stripped.startswith("pub mod ") and stripped.endswith(";"):
        module = stripped[len("pub mod ") : -1]
        return module in contracts_to_keep
    return False


def update_mod_file(
    bindings_path: str | os.PathLike[str], contracts_to_keep: Sequence[str]
) -> None:
    """Rewrite mod.rs keeping only comments and declarations of kept contracts."""
    mod_path = Path(bindings_path) / "mod.rs"
    try:
        text = mod_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        mod_path.touch()
        text = ""
    keep = set(contracts_to_keep)
    lines = [line for line in text.splitlines() if _kept_line(line, keep)]
    mod_path.write_text("\n".join(lines), encoding="utf-8")


def remove_unneeded_contracts(
    bindings_path: str | os.PathLike[str], needed_contracts: Sequence[str]
) -> None:
    """Delete binding files for contracts not in the list and update mod.rs."""
    if not needed_contracts:
        return
    bindings_path = Path(bindings_path)
    needed = {contract.lower() for contract in needed_contracts}
    if bindings_path.is_dir():
        for path in sorted(bindings_path.iterdir()):
            if not path.is_file():
                continue
            stem = path.stem.lower()
            if stem in _SKIPPED_BINDING_STEMS:
                continue
            if stem not in needed:
                path.unlink()
    update_mod_file(bindings_path, needed_contracts)


def bindings_for_submodules(
    libdir: str | os.PathLike[str], config: ArbiterConfig
) -> tuple[Path | None, list[str]]:
    """Generate bindings for one git submodule of a library directory.

    Returns the output path (None when there is nothing to bind) and the
    contracts the bindings were generated for.
    """
    libdir = Path(libdir)
    output_path = config.bindings_path.parent
    contracts: list[str] = []
    if libdir.is_dir() and (libdir / ".git").exists() and libdir.name != "forge-std":
        contracts, target = collect_contract_list(libdir, config)
        if len(contracts) <= 1:
            return None, contracts
        submodule_name = libdir.name.replace("-", "_")
        print(f"submodule name: {submodule_name!r}")
        submodule_output = output_path / f"{submodule_name}_bindings"
        print(f"output path: for submodule {submodule_name!r} is {submodule_output}")
        completed = _start_forge(_bind_arguments(submodule_output, target))
        _check_forge(completed, hint=False)
        output_path = submodule_output
    return output_path, contracts


def for_each_submodule(
    arbiter_config: ArbiterConfig, lib_dir: str | os.PathLike[str]
) -> None:
    """Generate and prune bindings for every git submodule in a library directory."""
    lib_dir = Path(lib_dir)
    if not lib_dir.is_dir():
        return
    for path in sorted(lib_dir.iterdir()):
        if path.is_dir() and (path / ".git").exists():
            print(f"Generating bindings for library: {path}")
            output_path, contracts = bindings_for_submodules(path, arbiter_config)
            if output_path is None:
                continue
            remove_unneeded_contracts(output_path, contracts)


def forge_bind(root: str | os.PathLike[str] | None = None) -> None:
    """Generate bindings for the project at root (default: the current directory)."""
    base = Path.cwd() if root is None else Path(root)
    foundry_config = FoundryConfig.load(base)
    try:
        arbiter_config = ArbiterConfig.load(base / "arbiter.toml")
    except ConfigError:
        arbiter_config = ArbiterConfig()
    arbiter_config = dataclasses.replace(
        arbiter_config, bindings_path=base / arbiter_config.bindings_path
    )

    completed = _start_forge(_bind_arguments(arbiter_config.bindings_path), cwd=base)
    project_contracts, _ = collect_contract_list(foundry_config.src, arbiter_config)
    _check_forge(completed, hint=True)

    remove_unneeded_contracts(arbiter_config.bindings_path, project_contracts)
    if arbiter_config.submodules:
        for lib_dir in foundry_config.libs:
            for_each_submodule(arbiter_config, lib_dir)
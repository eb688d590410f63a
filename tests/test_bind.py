import subprocess
from pathlib import Path
from unittest import mock

import pytest

from arbiter_cli.bind import (
    bindings_for_submodules,
    collect_contract_list,
    for_each_submodule,
    forge_bind,
    is_test,
    remove_unneeded_contracts,
    update_mod_file,
)
from arbiter_cli.config import ArbiterConfig
from arbiter_cli.errors import CommandError


def mock_config():
    return ArbiterConfig(
        bindings_path=Path("src") / "bindings", submodules=False, ignore_interfaces=False
    )


def mock_config_with_submodules():
    return ArbiterConfig(bindings_path=Path("src"), submodules=True, ignore_interfaces=False)


def forge_writes(files):
    """A subprocess.run replacement that writes binding files into the -b directory."""

    def run(command, **kwargs):
        out = Path(command[command.index("-b") + 1])
        out.mkdir(parents=True, exist_ok=True)
        for name, content in files.items():
            (out / name).write_text(content)
        return subprocess.CompletedProcess(command, 0, b"done", b"")

    return run


def test_is_test():
    assert is_test("Foo.sol") is True
    assert is_test("Foo") is True
    assert is_test("Foo.t") is False


def test_collect_contract_list_from_contracts(tmp_path):
    contracts_dir = tmp_path / "contracts"
    contracts_dir.mkdir()
    for name in [
        "ExampleContract.sol",
        "AnotherTest.sol",
        "ITestInterface.sol",
        "G3M.sol",
        "SD59x18Math.sol",
    ]:
        (contracts_dir / name).write_text("")
    contracts, target = collect_contract_list(tmp_path, mock_config())
    assert sorted(contracts) == sorted(
        [
            "shared_types",
            "example_contract",
            "sd5_9x_18_math",
            "g3m",
            "another_test",
            "i_test_interface",
        ]
    )
    assert target == contracts_dir


def test_collect_contract_list_from_src(tmp_path):
    src_dir = tmp_path / "src"
    src_dir.mkdir()
    for name in [
        "ExampleOne.sol",
        "TestTwo.sol",
        "ITestInterface.sol",
        "G3M.sol",
        "SD59x18Math.sol",
    ]:
        (src_dir / name).write_text("")
    contracts, target = collect_contract_list(tmp_path, mock_config())
    assert sorted(contracts) == sorted(
        [
            "shared_types",
            "sd5_9x_18_math",
            "example_one",
            "test_two",
            "g3m",
            "i_test_interface",
        ]
    )
    assert target == src_dir


def test_collect_contract_list_ignoring_interfaces(tmp_path):
    src_dir = tmp_path / "src"
    src_dir.mkdir()
    for name in ["Foo.sol", "IBar.sol", "Baz.t"]:
        (src_dir / name).write_text("")
    config = ArbiterConfig(ignore_interfaces=True)
    contracts, _ = collect_contract_list(tmp_path, config)
    assert contracts == ["shared_types", "baz"]


def test_collect_contract_list_missing_directory(tmp_path):
    missing = tmp_path / "nothing"
    assert collect_contract_list(missing, mock_config()) == (["shared_types"], missing)


def test_collect_contract_list_rejects_invalid_name(tmp_path):
    src_dir = tmp_path / "src"
    src_dir.mkdir()
    (src_dir / "my-file.sol").write_text("")
    with pytest.raises(ValueError):
        collect_contract_list(tmp_path, mock_config())


def test_update_mod_file(tmp_path):
    mod_path = tmp_path / "mod.rs"
    mod_path.write_text(
        "\n    // Some comments\n    pub mod example_contract;\n    pub mod test_contract;\n    "
    )
    update_mod_file(tmp_path, ["example_contract"])
    updated = mod_path.read_text()
    assert "pub mod example_contract;" in updated
    assert "pub mod test_contract;" not in updated
    assert updated == "    // Some comments\n    pub mod example_contract;"


def test_update_mod_file_keeps_attributes(tmp_path):
    (tmp_path / "mod.rs").write_text("#![allow(clippy::all)]\npub mod a;\npub mod b;\nuse x;\n")
    update_mod_file(tmp_path, ["b"])
    assert (tmp_path / "mod.rs").read_text() == "#![allow(clippy::all)]\npub mod b;"


def test_update_mod_file_creates_missing_file(tmp_path):
    update_mod_file(tmp_path, ["a"])
    assert (tmp_path / "mod.rs").read_text() == ""


def test_remove_unneeded_contracts(tmp_path):
    (tmp_path / "Foo.rs").write_text("")
    (tmp_path / "other.rs").write_text("")
    (tmp_path / "settings.toml").write_text("")
    (tmp_path / "mod.rs").write_text("pub mod foo;\npub mod other;")
    remove_unneeded_contracts(tmp_path, ["shared_types", "foo"])
    assert sorted(p.name for p in tmp_path.iterdir()) == ["Foo.rs", "mod.rs", "settings.toml"]
    assert (tmp_path / "mod.rs").read_text() == "pub mod foo;"


def test_remove_unneeded_contracts_with_empty_list(tmp_path):
    (tmp_path / "other.rs").write_text("")
    remove_unneeded_contracts(tmp_path, [])
    assert sorted(p.name for p in tmp_path.iterdir()) == ["other.rs"]


def test_for_each_submodule_without_git(tmp_path):
    lib_dir = tmp_path / "mock_project" / "lib"
    for sub in ["foo", "Bar", "duck"]:
        (lib_dir / sub).mkdir(parents=True)
    with mock.patch("subprocess.run") as run:
        for_each_submodule(mock_config_with_submodules(), lib_dir)
    assert run.call_count == 0
    assert sorted(p.name for p in lib_dir.iterdir()) == ["Bar", "duck", "foo"]


def test_for_each_submodule_prunes_bindings(tmp_path):
    dep = tmp_path / "lib" / "dep"
    (dep / ".git").mkdir(parents=True)
    (dep / "src").mkdir()
    (dep / "src" / "A.sol").write_text("")
    (dep / "src" / "B.sol").write_text("")
    config = ArbiterConfig(bindings_path=tmp_path / "out" / "bindings", ignore_interfaces=False)
    files = {"a.rs": "", "c.rs": "", "mod.rs": "pub mod a;\npub mod c;"}
    with mock.patch("subprocess.run", side_effect=forge_writes(files)):
        for_each_submodule(config, tmp_path / "lib")
    out = tmp_path / "out" / "dep_bindings"
    assert sorted(p.name for p in out.iterdir()) == ["a.rs", "mod.rs"]
    assert (out / "mod.rs").read_text() == "pub mod a;"


def test_submodule_bindings_without_git(tmp_path):
    (tmp_path / "foo").mkdir()
    (tmp_path / "bar").mkdir()
    (tmp_path / "foo" / "file.txt").write_text("")
    (tmp_path / "bar" / "file.txt").write_text("")
    output_path, contracts = bindings_for_submodules(tmp_path, mock_config_with_submodules())
    assert output_path == Path(".")
    assert contracts == []


def test_submodule_bindings_skips_forge_std(tmp_path):
    forge_std = tmp_path / "forge-std"
    (forge_std / ".git").mkdir(parents=True)
    (forge_std / "src").mkdir()
    (forge_std / "src" / "Test.sol").write_text("")
    with mock.patch("subprocess.run") as run:
        result = bindings_for_submodules(forge_std, mock_config())
    assert result == (Path("src"), [])
    assert run.call_count == 0


def test_submodule_bindings_with_nothing_to_bind(tmp_path):
    dep = tmp_path / "dep"
    (dep / ".git").mkdir(parents=True)
    (dep / "src").mkdir()
    assert bindings_for_submodules(dep, mock_config()) == (None, ["shared_types"])


def test_submodule_bindings_runs_forge(tmp_path):
    dep = tmp_path / "my-lib"
    (dep / ".git").mkdir(parents=True)
    (dep / "src").mkdir()
    (dep / "src" / "A.sol").write_text("")
    (dep / "src" / "B.sol").write_text("")
    config = ArbiterConfig(bindings_path=tmp_path / "out" / "bindings")
    completed = subprocess.CompletedProcess([], 0, b"ok", b"")
    with mock.patch("subprocess.run", return_value=completed) as run:
        output_path, contracts = bindings_for_submodules(dep, config)
    expected_output = tmp_path / "out" / "my_lib_bindings"
    assert output_path == expected_output
    assert contracts == ["shared_types", "a", "b"]
    command = run.call_args.args[0]
    assert command[:2] == ["forge", "bind"]
    assert command[command.index("-b") + 1] == str(expected_output)
    assert command[command.index("-C") + 1] == str(dep / "src")


def test_submodule_bindings_forge_failure(tmp_path):
    dep = tmp_path / "dep"
    (dep / ".git").mkdir(parents=True)
    (dep / "src").mkdir()
    (dep / "src" / "A.sol").write_text("")
    completed = subprocess.CompletedProcess([], 1, b"", b"boom")
    with mock.patch("subprocess.run", return_value=completed):
        with pytest.raises(CommandError) as info:
            bindings_for_submodules(dep, mock_config())
    assert info.value.stderr == "boom"


def test_forge_bind_without_forge(tmp_path):
    with mock.patch("subprocess.run", side_effect=FileNotFoundError("forge")):
        with pytest.raises(CommandError):
            forge_bind(tmp_path)


def test_forge_bind_failure(tmp_path):
    completed = subprocess.CompletedProcess([], 2, b"", b"not a project")
    with mock.patch("subprocess.run", return_value=completed):
        with pytest.raises(CommandError) as info:
            forge_bind(tmp_path)
    assert info.value.message == "Command failed"


def test_forge_bind_prunes_project_bindings(tmp_path):
    (tmp_path / "arbiter.toml").write_text("ignore_interfaces = false\n")
    src = tmp_path / "src"
    bindings = src / "bindings"
    bindings.mkdir(parents=True)
    (src / "Foo.sol").write_text("")
    files = {"foo.rs": "", "stale.rs": "", "mod.rs": "pub mod foo;\npub mod stale;"}
    with mock.patch("subprocess.run", side_effect=forge_writes(files)) as run:
        forge_bind(tmp_path)
    command = run.call_args.args[0]
    assert command[command.index("-b") + 1] == str(bindings)
    assert run.call_args.kwargs["cwd"] == tmp_path
    assert sorted(p.name for p in bindings.iterdir()) == ["foo.rs", "mod.rs"]
    assert (bindings / "mod.rs").read_text() == "pub mod foo;"
# arbiter_cli

A small command-line companion for EVM simulation projects built with
`forge`. It has three subcommands:

- **init**: clone a project template, rename it, and run `forge install`
  and `forge bind` inside it;
- **bind**: regenerate contract bindings with `forge bind`, then delete the
  generated modules that do not belong to the project's contracts (and,
  optionally, those of git submodules in the library directories);
- **fork**: read a fork configuration, fetch account and storage data for
  the listed contracts and externally owned accounts from a JSON-RPC
  endpoint, and write it to a JSON file.

## Installation

```
pip install .
```

`git` and `forge` must be on your `PATH` for `init` and `bind`.

## Usage

```
arbiter init my_simulation            # clone the template into ./my_simulation
arbiter init my_simulation --no-git   # same, then remove the .git directory
arbiter bind                          # regenerate and prune bindings
arbiter fork fork_config.toml         # write forked state to disk
arbiter fork fork_config.toml --overwrite
arbiter --version
```

Running `arbiter` with no subcommand prints the help text. When a command
fails, the error is printed to standard error and the exit status is 1.

### init

The template repository is taken from the `ARBITER_TEMPLATE` environment
variable; anything `git clone` accepts will do. `init` fails with a
configuration error if it is not set. After cloning, every occurrence of
`arbiter_template` in the new project's `Cargo.toml` is replaced with the
project name, then `forge install` and
`forge bind --revert-strings debug -b src/bindings/ --module --overwrite`
are run in the new directory.

### bind

`arbiter bind` runs
`forge bind --revert-strings debug -b <bindings path> --module --overwrite --force`
in the current directory and then prunes the bindings directory: files
whose name is not one of the project's contract module names (or
`shared_types`) are deleted, except `mod.*` and `settings.*`, and `mod.rs`
is rewritten to keep only comment lines and `pub mod` lines of kept
modules.

Contract module names are made from the file names in the project's
source directory (a `src` or `contracts` directory inside it is used if
present): snake_case, an underscore before a leading digit, and a trailing
underscore for reserved words (`Enum` becomes `enum_`, `2Two` becomes
`_2_two`).

Settings come from an optional `arbiter.toml` in the current directory:

```toml
submodules = true          # also bind git submodules in the library dirs
ignore_interfaces = true   # filter the collected contract files (see below)
```

- Without `arbiter.toml`, bindings go to `src`, submodules are not bound
  and nothing is filtered.
- With `arbiter.toml`, bindings go to `src/bindings`; `submodules`
  defaults to false and `ignore_interfaces` to true.
- When `ignore_interfaces` is true, a file is kept only if its module name
  does not start with `i` and its extension is `.t`.

With `submodules` enabled, every directory in the library directories that
contains `.git` (other than `forge-std`) and has at least one contract
file is bound into `<name>_bindings` next to the bindings directory, with
dashes in the name turned into underscores, and pruned the same way.

The source and library directories come from `foundry.toml`
(`[profile.default]`, overlaid by the profile named in `FOUNDRY_PROFILE`),
defaulting to `src` and `["lib"]`.

### fork

```toml
output_directory = "./data"      # defaults to "./"
output_filename = "weth.json"    # defaults to "output.json"
provider = "http://localhost:8545"
block_number = 17000000

[contracts.weth]
address = "0x0000000000000000000000000000000000000001"
artifacts_path = "out/weth.json"
mappings = { balanceOf = ["0000000000000000000000000000000000000002"] }

[externally_owned_accounts]
alice = "0x0000000000000000000000000000000000000003"
```

The path is taken relative to the current directory; a `.toml` suffix may
be left off. Balances, nonces, code and storage are read at the given block
with `eth_getBalance`, `eth_getTransactionCount`, `eth_getCode` and
`eth_getStorageAt`. Storage slots come from each contract's `storageLayout`
artifact: every listed slot is copied, and for mappings one level deep the
slots of the hex-encoded keys listed under `mappings` are copied too.
Mappings of mappings are skipped with a note.

If the output file already exists, `fork` refuses to write unless
`--overwrite` is given. The file holds `meta` (the contract settings),
`raw` (for each address, its account info and a slot-to-value table in
decimal) and `externally_owned_accounts`.

## Library use

The pieces behind the commands can be imported:

- `arbiter_cli.naming`: `to_snake_case`, `safe_module_name` and helpers;
- `arbiter_cli.config`: `ArbiterConfig.load`, `FoundryConfig.load`;
- `arbiter_cli.bind`: `collect_contract_list`, `update_mod_file`,
  `remove_unneeded_contracts`, `forge_bind`;
- `arbiter_cli.init`: `init_project`, `remove_git`;
- `arbiter_cli.fork`: `ForkConfig.load`, `digest_artifacts`,
  `mapping_slot`, `parse_storage_type`;
- `arbiter_cli.errors`: `ArbiterError`, `ConfigError`, `CommandError`.

`ForkConfig.digest_config`, `into_fork` and `write_to_disk` accept any
object with `basic(address)` and `storage(address, slot)` methods in place
of the JSON-RPC provider.

## What it does not do

This package only prepares projects and data. It does not run
simulations, execute contracts, or load a fork snapshot back into any
environment.
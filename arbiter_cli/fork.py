"""Forking contract state from a live chain into a JSON snapshot on disk."""

from __future__ import annotations

import json
import os
import tomllib
import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass, field
from itertools import count
from pathlib import Path
from typing import Any, Protocol

from Crypto.Hash import keccak

from .errors import ArbiterError, ConfigError

_NESTED_MAPPING_NOTE = (
    "Only handling one map deep for now. A map of a map was found and ignored."
)


def _keccak256(data: bytes) -> bytes:
    return keccak.new(digest_bits=256, data=data).digest()


def _json_error(detail: str) -> ArbiterError:
    return ArbiterError(f"Error with serde_json: {detail}")


def _db_error(detail: str) -> ArbiterError:
    return ArbiterError(f"Error with DB: {detail}")


def _field(data: Any, key: str, kind: type, *, optional: bool = False) -> Any:
    if not isinstance(data, Mapping):
        raise _json_error("expected an object")
    if key not in data:
        if optional:
            return None
        raise _json_error(f"missing field `{key}`")
    value = data[key]
    if optional and value is None:
        return None
    if kind is int:
        valid = isinstance(value, int) and not isinstance(value, bool) and value >= 0
    else:
        valid = isinstance(value, kind)
    if not valid:
        raise _json_error(f"invalid type for field `{key}`")
    return value


@dataclass(frozen=True)
class StorageItem:
    """One state variable from a compiler storage layout."""

    ast_id: int
    contract: str
    label: str
    offset: int
    slot: str
    type_: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StorageItem:
        return cls(
            ast_id=_field(data, "astId", int),
            contract=_field(data, "contract", str),
            label=_field(data, "label", str),
            offset=_field(data, "offset", int),
            slot=_field(data, "slot", str),
            type_=_field(data, "type", str),
        )


@dataclass(frozen=True)
class MappingType:
    """A mapping type from a storage layout."""

    encoding: str
    key: str
    value: str
    label: str | None = None
    number_of_bytes: str | None = None


@dataclass(frozen=True)
class SimpleType:
    """A non-mapping type from a storage layout."""

    encoding: str
    label: str
    number_of_bytes: str


StorageType = MappingType | SimpleType


def parse_storage_type(data: Mapping[str, Any]) -> StorageType:
    """Parse a storage type, trying the mapping shape before the simple one."""
    try:
        return MappingType(
            encoding=_field(data, "encoding", str),
            key=_field(data, "key", str),
            value=_field(data, "value", str),
            label=_field(data, "label", str, optional=True),
            number_of_bytes=_field(data, "numberOfBytes", str, optional=True),
        )
    except ArbiterError:
        pass
    try:
        return SimpleType(
            encoding=_field(data, "encoding", str),
            label=_field(data, "label", str),
            number_of_bytes=_field(data, "numberOfBytes", str),
        )
    except ArbiterError:
        raise _json_error(
            "data did not match any variant of untagged enum StorageType"
        ) from None


@dataclass(frozen=True)
class StorageLayout:
    """The storage variables of a contract and the types they refer to."""

    storage: list[StorageItem]
    types: dict[str, StorageType]

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StorageLayout:
        items = _field(data, "storage", list)
        types = _field(data, "types", Mapping)
        return cls(
            storage=[StorageItem.from_dict(item) for item in items],
            types={str(name): parse_storage_type(kind) for name, kind in types.items()},
        )

    def type_of(self, name: str) -> StorageType:
        try:
            return self.types[name]
        except KeyError:
            raise _json_error(f"unknown storage type `{name}`") from None


@dataclass(frozen=True)
class Artifacts:
    """The parts of a compiler artifact the fork needs."""

    storage_layout: StorageLayout

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Artifacts:
        return cls(StorageLayout.from_dict(_field(data, "storageLayout", Mapping)))


def digest_artifacts(path: str | os.PathLike[str]) -> Artifacts:
    """Read a compiler artifact JSON file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ArbiterError(f"Error with file IO: {exc}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise _json_error(str(exc)) from exc
    return Artifacts.from_dict(data)


def mapping_slot(key: str, key_size: int, slot: int) -> int:
    """Storage slot of `key` in a mapping stored at `slot`.

    The hex-encoded key is left-padded with zeros as for a key type of
    `key_size` bytes, followed by the 32-byte slot, and hashed.
    """
    if not 0 <= key_size <= 32:
        raise ValueError(f"key size {key_size} is outside 0..=32")
    raw = bytes.fromhex(key.removeprefix("0x"))
    data = bytes(32 - key_size) + raw + slot.to_bytes(32, "big")
    return int.from_bytes(_keccak256(data), "big")


def _parse_address(value: Any, where: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{where}: address must be a string")
    digits = value.removeprefix("0x")
    if len(digits) != 40:
        raise ConfigError(f"{where}: invalid address {value!r}")
    try:
        bytes.fromhex(digits)
    except ValueError:
        raise ConfigError(f"{where}: invalid address {value!r}") from None
    return "0x" + digits.lower()


@dataclass(frozen=True)
class ContractMetadata:
    """Where a forked contract lives and which mapping keys to copy."""

    address: str
    artifacts_path: str
    mappings: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, name: str, data: Any) -> ContractMetadata:
        if not isinstance(data, Mapping):
            raise ConfigError(f"contract {name}: expected a table")
        artifacts_path = data.get("artifacts_path")
        if not isinstance(artifacts_path, str):
            raise ConfigError(f"contract {name}: artifacts_path must be a string")
        mappings = data.get("mappings", {})
        if not isinstance(mappings, Mapping) or not all(
            isinstance(keys, list) and all(isinstance(k, str) for k in keys)
            for keys in mappings.values()
        ):
            raise ConfigError(f"contract {name}: mappings must map names to lists of keys")
        return cls(
            address=_parse_address(data.get("address"), f"contract {name}"),
            artifacts_path=artifacts_path,
            mappings={str(label): list(keys) for label, keys in mappings.items()},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "artifacts_path": self.artifacts_path,
            "mappings": self.mappings,
        }


@dataclass
class AccountInfo:
    """Balance, nonce and code of an account."""

    balance: int = 0
    nonce: int = 0
    code: bytes = b""

    @property
    def code_hash(self) -> bytes:
        return _keccak256(self.code)

    def to_dict(self) -> dict[str, Any]:
        return {
            "balance": hex(self.balance),
            "nonce": self.nonce,
            "code_hash": "0x" + self.code_hash.hex(),
            "code": "0x" + self.code.hex(),
        }


@dataclass
class DbAccount:
    """An account and the storage slots copied for it."""

    info: AccountInfo
    storage: dict[int, int] = field(default_factory=dict)


@dataclass
class Fork:
    """Forked chain state together with the metadata that produced it."""

    accounts: dict[str, DbAccount]
    contracts_meta: dict[str, ContractMetadata]
    eoa: dict[str, str]


class StateProvider(Protocol):
    def basic(self, address: str) -> AccountInfo | None: ...

    def storage(self, address: str, slot: int) -> int: ...


class JsonRpcProvider:
    """Reads account state at a fixed block from an Ethereum JSON-RPC endpoint."""

    def __init__(self, url: str, block_number: int, timeout: float = 30.0) -> None:
        self.url = url
        self.block = hex(block_number)
        self.timeout = timeout
        self._ids = count(1)

    def _call(self, method: str, params: list[Any]) -> Any:
        payload = json.dumps(
            {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        ).encode("utf-8")
        try:
            request = urllib.request.Request(
                self.url, data=payload, headers={"Content-Type": "application/json"}
            )
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                reply = json.load(response)
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise _db_error(f"{method} failed: {exc}") from exc
        if not isinstance(reply, Mapping) or "error" in reply:
            detail = reply.get("error") if isinstance(reply, Mapping) else reply
            raise _db_error(f"{method} failed: {detail}")
        return reply.get("result")

    def basic(self, address: str) -> AccountInfo | None:
        balance = self._call("eth_getBalance", [address, self.block])
        nonce = self._call("eth_getTransactionCount", [address, self.block])
        code = self._call("eth_getCode", [address, self.block])
        if balance is None or nonce is None or code is None:
            return None
        return AccountInfo(
            balance=int(balance, 16),
            nonce=int(nonce, 16),
            code=bytes.fromhex(code.removeprefix("0x")),
        )

    def storage(self, address: str, slot: int) -> int:
        value = self._call("eth_getStorageAt", [address, hex(slot), self.block])
        return int(value, 16)


def _insert_storage(accounts: dict[str, DbAccount], address: str, slot: int, value: int) -> None:
    accounts.setdefault(address, DbAccount(AccountInfo())).storage[slot] = value


def _fetch_storage(
    provider: StateProvider, accounts: dict[str, DbAccount], address: str, slot: int
) -> None:
    _insert_storage(accounts, address, slot, provider.storage(address, slot))


def _create_storage_layout(
    contract: ContractMetadata,
    layout: StorageLayout,
    accounts: dict[str, DbAccount],
    provider: StateProvider,
) -> None:
    for item in layout.storage:
        try:
            slot = int(item.slot, 10)
        except ValueError:
            raise _json_error(f"invalid slot {item.slot!r}") from None
        _fetch_storage(provider, accounts, contract.address, slot)

        kind = layout.type_of(item.type_)
        if isinstance(kind, SimpleType):
            continue
        if isinstance(layout.type_of(kind.value), MappingType):
            print(_NESTED_MAPPING_NOTE)
            continue
        key_type = layout.type_of(kind.key)
        if isinstance(key_type, MappingType):
            print(_NESTED_MAPPING_NOTE)
            continue
        key_size = int(key_type.number_of_bytes)
        for key in contract.mappings.get(item.label, []):
            _fetch_storage(
                provider, accounts, contract.address, mapping_slot(key, key_size, slot)
            )


def _read_config(path: Path) -> dict[str, Any]:
    candidates = [path, path.with_name(path.name + ".toml")]
    for candidate in candidates:
        if candidate.is_file():
            try:
                with candidate.open("rb") as handle:
                    return tomllib.load(handle)
            except tomllib.TOMLDecodeError as exc:
                raise ConfigError(f"{candidate}: {exc}") from exc
    raise ConfigError(f'configuration file "{path}" not found')


@dataclass
class ForkConfig:
    """Which contracts and accounts to copy from which chain and block."""

    provider: str
    block_number: int
    contracts_meta: dict[str, ContractMetadata] = field(default_factory=dict)
    externally_owned_accounts: dict[str, str] = field(default_factory=dict)
    output_directory: str = "./"
    output_filename: str = "output.json"

    @classmethod
    def load(cls, fork_config_path: str | os.PathLike[str]) -> ForkConfig:
        """Read a fork configuration, relative to the current directory."""
        data = _read_config(Path.cwd() / fork_config_path)

        provider = data.get("provider")
        if not isinstance(provider, str):
            raise ConfigError("missing field `provider`")
        block_number = data.get("block_number")
        if not isinstance(block_number, int) or isinstance(block_number, bool) or block_number < 0:
            raise ConfigError("missing or invalid field `block_number`")
        contracts = data.get("contracts")
        if not isinstance(contracts, Mapping):
            raise ConfigError("missing field `contracts`")
        accounts = data.get("externally_owned_accounts")
        if not isinstance(accounts, Mapping):
            raise ConfigError("missing field `externally_owned_accounts`")

        config = cls(
            provider=provider,
            block_number=block_number,
            contracts_meta={
                name: ContractMetadata.from_mapping(name, meta)
                for name, meta in contracts.items()
            },
            externally_owned_accounts={
                name: _parse_address(address, f"account {name}")
                for name, address in accounts.items()
            },
        )

        output_directory = data.get("output_directory")
        if output_directory is None:
            print("No output path specified. Defaulting to current directory.")
        elif isinstance(output_directory, str):
            config.output_directory = output_directory
        else:
            raise ConfigError("output_directory must be a string")
        output_filename = data.get("output_filename")
        if output_filename is None:
            print("No output filename specified. Defaulting to `output.json.`")
        elif isinstance(output_filename, str):
            config.output_filename = output_filename
        else:
            raise ConfigError("output_filename must be a string")
        return config

    @property
    def output_path(self) -> Path:
        return Path(self.output_directory) / self.output_filename

    def spawn_provider(self) -> JsonRpcProvider:
        return JsonRpcProvider(self.provider, self.block_number)

    def digest_config(self, provider: StateProvider | None = None) -> dict[str, DbAccount]:
        """Fetch the accounts and listed storage of every contract and account."""
        source = provider if provider is not None else self.spawn_provider()
        accounts: dict[str, DbAccount] = {}

        def fetch_info(address: str) -> None:
            info = source.basic(address)
            if info is None:
                raise _db_error(f"Failed to fetch account info for {address}.")
            accounts.setdefault(address, DbAccount(info)).info = info

        for contract in self.contracts_meta.values():
            fetch_info(contract.address)
            layout = digest_artifacts(contract.artifacts_path).storage_layout
            _create_storage_layout(contract, layout, accounts, source)
            for eoa in self.externally_owned_accounts.values():
                fetch_info(eoa)
        return accounts

    def into_fork(self, provider: StateProvider | None = None) -> Fork:
        return Fork(
            accounts=self.digest_config(provider),
            contracts_meta=dict(self.contracts_meta),
            eoa=dict(self.externally_owned_accounts),
        )

    def write_to_disk(
        self, overwrite: bool = False, provider: StateProvider | None = None
    ) -> Path:
        """Fork the configured state and write it as JSON; returns the file path."""
        file_path = self.output_path
        if file_path.is_file():
            if not overwrite:
                raise ArbiterError(
                    "File already exists at output path. Please use the `--overwrite` "
                    "flag, delete it, or change the output path."
                )
            file_path.unlink()

        fork = self.into_fork(provider)
        raw = {
            address: [
                account.info.to_dict(),
                {str(slot): str(value) for slot, value in account.storage.items()},
            ]
            for address, account in fork.accounts.items()
        }
        disk_data = {
            "meta": {name: meta.to_dict() for name, meta in fork.contracts_meta.items()},
            "raw": raw,
            "externally_owned_accounts": fork.eoa,
        }
        Path(self.output_directory).mkdir(parents=True, exist_ok=True)
        file_path.write_text(json.dumps(disk_data), encoding="utf-8")
        print("Wrote fork data to disk.")
        return file_path
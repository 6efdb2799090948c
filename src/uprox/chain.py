"""
In-memory chain: accounts, contract code, storage and an event log.

Calls are dispatched by address. When the code at an address is a proxy,
the proxy decides which code runs (its own admin functions or the
implementation), and implementation code runs against the proxy's storage.

Every state-changing call and every deployment is a transaction: if
anything raises, storage, code, nonces and logs go back to what they were
before the call, and the exception propagates.
"""
from __future__ import annotations

import copy
import hashlib
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Type, Union

from uprox.contract import CallContext, Contract, get_contract_class
from uprox.contracts.proxy import Proxy
from uprox.errors import NoCodeError, Revert
from uprox.logging_utils import get_logger


logger = get_logger(__name__)


def _derive_address(seed: str) -> str:
    return "0x" + hashlib.sha256(seed.encode()).hexdigest()[-40:]


@dataclass
class Log:
    """An emitted event."""
    address: str
    event: str
    args: Dict[str, Any] = field(default_factory=dict)


class Chain:
    """
    A single in-memory network.

    Args:
        chain_id: Network identifier, recorded in manifests
        num_accounts: Number of funded accounts to derive
    """

    def __init__(self, chain_id: int = 31337, num_accounts: int = 10):
        self.chain_id = chain_id
        self.accounts: List[str] = [
            _derive_address(f"account:{chain_id}:{i}") for i in range(num_accounts)
        ]
        self.logs: List[Log] = []
        self._code: Dict[str, Type[Contract]] = {}
        self._storage: Dict[str, Dict[Any, Any]] = {}
        self._nonces: Dict[str, int] = {}

    @classmethod
    def from_config(cls, config) -> "Chain":
        return cls(chain_id=config.chain_id, num_accounts=config.num_accounts)

    @property
    def default_sender(self) -> str:
        return self.accounts[0]

    # -------------------------------------------------------------------------
    # State access
    # -------------------------------------------------------------------------

    def has_code(self, address: str) -> bool:
        return address in self._code

    def code_at(self, address: str) -> Type[Contract]:
        try:
            return self._code[address]
        except KeyError:
            raise NoCodeError(f"No contract code at {address}") from None

    def storage_at(self, address: str) -> Dict[Any, Any]:
        return self._storage.setdefault(address, {})

    def get_nonce(self, address: str) -> int:
        return self._nonces.get(address, 0)

    def emit(self, address: str, event: str, args: Dict[str, Any]) -> None:
        self.logs.append(Log(address=address, event=event, args=dict(args)))

    def events(self, event: Optional[str] = None, address: Optional[str] = None) -> List[Log]:
        """Return logs, optionally filtered by event name and emitting address."""
        return [
            log for log in self.logs
            if (event is None or log.event == event)
            and (address is None or log.address == address)
        ]

    @contextmanager
    def _transaction(self):
        saved_storage = copy.deepcopy(self._storage)
        saved_code = dict(self._code)
        saved_nonces = dict(self._nonces)
        log_count = len(self.logs)
        try:
            yield
        except Exception:
            # restore in place: outer call frames hold references to these dicts
            for address in list(self._storage):
                if address not in saved_storage:
                    del self._storage[address]
            for address, contents in saved_storage.items():
                live = self._storage.setdefault(address, {})
                live.clear()
                live.update(contents)
            self._code = saved_code
            self._nonces = saved_nonces
            del self.logs[log_count:]
            raise

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    def deploy(self, contract_cls: Type[Contract], *args, sender: Optional[str] = None) -> str:
        """
        Deploy contract code and run its constructor.

        Returns:
            The new contract address, derived from sender and nonce
        """
        sender = sender or self.default_sender
        with self._transaction():
            nonce = self._nonces.get(sender, 0)
            self._nonces[sender] = nonce + 1
            address = _derive_address(f"{sender}:{nonce}")
            self._code[address] = contract_cls
            storage = self._storage.setdefault(address, {})
            if hasattr(contract_cls, "constructor"):
                ctx = CallContext(self, address, address, sender, storage)
                contract_cls(ctx).constructor(*args)
            elif args:
                raise TypeError(f"{contract_cls.__name__} has no constructor but got {len(args)} argument(s)")
        logger.debug("Deployed %s at %s (sender %s)", contract_cls.__name__, address, sender)
        return address

    def call(self, address: str, function: str, *args, sender: Optional[str] = None) -> Any:
        """
        Call an ABI function on the contract at `address`.

        Raises:
            NoCodeError: If there is no code at `address`
            Revert: If the function does not exist or the contract reverts
        """
        sender = sender or self.default_sender
        code = self.code_at(address)
        code_address = address
        storage = self.storage_at(address)
        if issubclass(code, Proxy):
            target = code.route(storage, sender, function)
            if target is not None:
                code_address = target
                code = self.code_at(target)
        ctx = CallContext(self, address, code_address, sender, storage)
        return self._execute(code, ctx, function, args)

    def delegate(self, ctx: CallContext, code_address: str, function: str, args: Sequence[Any] = ()) -> Any:
        """Run the code at `code_address` against the storage of `ctx`, keeping msg.sender."""
        code = self.code_at(code_address)
        frame = CallContext(self, ctx.address, code_address, ctx.sender, ctx.storage)
        return self._execute(code, frame, function, args)

    def _execute(self, code: Type[Contract], ctx: CallContext, function: str, args: Sequence[Any]) -> Any:
        kind = code.abi().get(function)
        if kind is None:
            raise Revert(f"function `{function}` not found on {code.__name__}")
        bound = getattr(code(ctx), function)
        if kind == "view":
            return bound(*args)
        with self._transaction():
            return bound(*args)

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    def get_contract_factory(self, contract: Union[str, Type[Contract]], signer: Optional[str] = None) -> "ContractFactory":
        contract_cls = get_contract_class(contract) if isinstance(contract, str) else contract
        return ContractFactory(contract_cls, self, signer)

    def get_contract_at(self, contract: Union[str, Type[Contract]], address: str,
                        signer: Optional[str] = None) -> "ContractHandle":
        return self.get_contract_factory(contract, signer).attach(address)


class ContractFactory:
    """Deploys or attaches to a contract class on behalf of a signer."""

    def __init__(self, contract_cls: Type[Contract], chain: Chain, signer: Optional[str] = None):
        self.contract_cls = contract_cls
        self.chain = chain
        self.signer = signer or chain.default_sender

    @property
    def contract_name(self) -> str:
        return self.contract_cls.__name__

    def deploy(self, *args) -> "ContractHandle":
        address = self.chain.deploy(self.contract_cls, *args, sender=self.signer)
        return self.attach(address)

    def attach(self, address: str) -> "ContractHandle":
        return ContractHandle(self.chain, address, self.contract_cls, self.signer)

    def connect(self, signer: str) -> "ContractFactory":
        return ContractFactory(self.contract_cls, self.chain, signer)

    def __repr__(self):
        return f"ContractFactory({self.contract_name}, signer={self.signer})"


class ContractHandle:
    """
    A contract interface bound to an address and a signer.

    ABI functions of the interface class are exposed as attributes:
        handle.name() -> chain.call(handle.address, "name", sender=handle.signer)
    """

    def __init__(self, chain: Chain, address: str, contract_cls: Type[Contract], signer: str):
        self.chain = chain
        self.address = address
        self.contract_cls = contract_cls
        self.signer = signer

    def __getattr__(self, name: str):
        contract_cls = self.__dict__.get("contract_cls")
        if contract_cls is None or name.startswith("_") or name not in contract_cls.abi():
            raise AttributeError(f"Contract has no function `{name}`")

        def method(*args):
            return self.chain.call(self.address, name, *args, sender=self.signer)

        method.__name__ = name
        return method

    def connect(self, signer: str) -> "ContractHandle":
        return ContractHandle(self.chain, self.address, self.contract_cls, signer)

    def __repr__(self):
        return f"<{self.contract_cls.__name__} at {self.address}>"

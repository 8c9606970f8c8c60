"""
Authority -- caller identity and role resolution.

Responsibility:
    Replaces role mixins with an explicit ``AuthorizationContext`` (caller
    plus resolved role set) that every privileged kernel operation receives
    as its first argument.  Contexts are produced by a ``RoleAuthority``
    collaborator; ``StaticRoleAuthority`` is the in-process implementation
    built from configured role bindings.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Failure modes:
    - MissingRoleError from ``AuthorizationContext.require``.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

from carbon_kernel.exceptions import MissingRoleError


class Role(str, Enum):
    """Privileged roles recognised by the kernel."""

    VERIFIER = "verifier"  # confirm / reject / set-to-pending batches
    TOKENIZER = "tokenizer"  # mint empty batches
    DETOKENIZER = "detokenizer"  # finalize / revert detokenization requests
    RETIREMENT_FINALIZER = "retirement_finalizer"  # finalize / revert retirements


@dataclass(frozen=True)
class AuthorizationContext:
    """
    Immutable caller identity with its resolved roles.

    Contract:
        Built once per incoming call by the RoleAuthority and passed into
        kernel operations.  The kernel never looks roles up on its own.
    """

    caller: str
    roles: frozenset[Role] = field(default_factory=frozenset)

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    def require(self, role: Role) -> None:
        """Raise MissingRoleError unless the caller holds ``role``."""
        if role not in self.roles:
            raise MissingRoleError(self.caller, role.value)


@runtime_checkable
class RoleAuthority(Protocol):
    """Collaborator that answers role membership questions."""

    def has_role(self, role: Role, caller: str) -> bool:
        ...

    def context_for(self, caller: str) -> AuthorizationContext:
        ...


class StaticRoleAuthority:
    """
    RoleAuthority backed by a fixed role -> callers mapping.

    Guarantees:
        - ``context_for`` resolves every role the caller holds.
        - Unknown callers get an empty role set (not an error).
    """

    def __init__(self, bindings: Mapping[Role, Iterable[str]] | None = None):
        self._bindings: dict[Role, frozenset[str]] = {
            role: frozenset(callers) for role, callers in (bindings or {}).items()
        }

    def has_role(self, role: Role, caller: str) -> bool:
        return caller in self._bindings.get(role, frozenset())

    def context_for(self, caller: str) -> AuthorizationContext:
        roles = frozenset(role for role in Role if self.has_role(role, caller))
        return AuthorizationContext(caller=caller, roles=roles)

    def grant(self, role: Role, caller: str) -> None:
        self._bindings[role] = self._bindings.get(role, frozenset()) | {caller}

    def revoke(self, role: Role, caller: str) -> None:
        self._bindings[role] = self._bindings.get(role, frozenset()) - {caller}

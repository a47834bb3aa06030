"""Orbital indices, fermionic operators, operator strings and delta constraints."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator


class IndexSpace(Enum):
    """Orbital subspace an index runs over, in canonical rank order."""

    CORE = 0
    ACTIVE = 1
    VIRTUAL = 2
    GENERAL = 3

    @property
    def rank(self) -> int:
        return self.value


@dataclass(frozen=True)
class Index:
    """A symbolic orbital index restricted to one subspace."""

    symbol: str
    space: IndexSpace


class FermionOpKind(Enum):
    CREATE = 0
    ANNIHILATE = 1

    @property
    def rank(self) -> int:
        return self.value


@dataclass(frozen=True)
class FermionOp:
    """A single creation or annihilation operator."""

    kind: FermionOpKind
    index: Index

    def __mul__(self, other: object) -> OperatorProduct:
        if isinstance(other, FermionOp):
            return OperatorProduct((self, other))
        return NotImplemented

    def __str__(self) -> str:
        if self.kind is FermionOpKind.CREATE:
            return f"a†({self.index.symbol})"
        return f"a({self.index.symbol})"


@dataclass(frozen=True)
class OperatorProduct:
    """An ordered string of fermionic operators."""

    ops: tuple[FermionOp, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "ops", tuple(self.ops))

    def __mul__(self, other: object) -> OperatorProduct:
        if isinstance(other, FermionOp):
            return OperatorProduct(self.ops + (other,))
        return NotImplemented

    def __len__(self) -> int:
        return len(self.ops)

    def __iter__(self) -> Iterator[FermionOp]:
        return iter(self.ops)

    def __str__(self) -> str:
        return " ".join(str(op) for op in self.ops)

    def canonicalize(self) -> OperatorProduct:
        """Return creators before annihilators, each group ordered by symbol."""
        return canonicalize_operator_product(self)


@dataclass(frozen=True)
class DeltaConstraint:
    """A Kronecker delta between two indices."""

    left: Index
    right: Index

    def is_contradictory(self) -> bool:
        """True when the indices live in different, non-general subspaces."""
        if IndexSpace.GENERAL in (self.left.space, self.right.space):
            return False
        return self.left.space is not self.right.space


def canonicalize_operator_product(product: OperatorProduct) -> OperatorProduct:
    """Stably sort operators by kind (creators first) and then by symbol."""
    return OperatorProduct(
        sorted(product.ops, key=lambda op: (op.kind.rank, op.index.symbol))
    )


def package_name() -> str:
    return "symbolic_mr"


def core(symbol: str) -> Index:
    return Index(symbol, IndexSpace.CORE)


def active(symbol: str) -> Index:
    return Index(symbol, IndexSpace.ACTIVE)


def virtual(symbol: str) -> Index:
    return Index(symbol, IndexSpace.VIRTUAL)


def general(symbol: str) -> Index:
    return Index(symbol, IndexSpace.GENERAL)


def create(index: Index) -> FermionOp:
    return FermionOp(FermionOpKind.CREATE, index)


def annihilate(index: Index) -> FermionOp:
    return FermionOp(FermionOpKind.ANNIHILATE, index)


def operator_string(ops: Iterable[FermionOp]) -> OperatorProduct:
    return OperatorProduct(tuple(ops))


def delta(left: Index, right: Index) -> DeltaConstraint:
    return DeltaConstraint(left, right)
"""Exact evaluation of operator expectations on small determinant spaces."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

from symbolic_mr.operators import FermionOpKind, Index, IndexSpace, OperatorProduct
from symbolic_mr.reference import (
    DeltaTerm,
    Gamma2Term,
    GammaTerm,
    HigherRdmTerm,
    ProductTerm,
    SumTerm,
    TensorTerm,
    ZeroTerm,
)

OrbitalOp = tuple[FermionOpKind, int]


def _check_range(index: int, limit: int, space: str) -> None:
    if not 0 <= index < limit:
        raise IndexError(f"{space} orbital {index} out of range (0..{limit})")


@dataclass(frozen=True)
class ExactSystem:
    """Orbital counts of the core, active and virtual spaces, laid out in that order."""

    core: int = 2
    active: int = 3
    virtual: int = 2

    def core_orbital(self, index: int) -> int:
        _check_range(index, self.core, "core")
        return index

    def active_orbital(self, index: int) -> int:
        _check_range(index, self.active, "active")
        return self.core + index

    def virtual_orbital(self, index: int) -> int:
        _check_range(index, self.virtual, "virtual")
        return self.core + self.active + index

    def orbital_count(self) -> int:
        return self.core + self.active + self.virtual


@dataclass(frozen=True)
class ExactIndexAssignment:
    """Maps symbolic indices to concrete orbitals; builder methods return new copies."""

    entries: tuple[tuple[IndexSpace, str, int], ...] = ()

    def _with(self, space: IndexSpace, symbol: str, orbital: int) -> ExactIndexAssignment:
        return ExactIndexAssignment(self.entries + ((space, symbol, orbital),))

    def core(self, symbol: str, orbital: int) -> ExactIndexAssignment:
        return self._with(IndexSpace.CORE, symbol, orbital)

    def active(self, symbol: str, orbital: int) -> ExactIndexAssignment:
        return self._with(IndexSpace.ACTIVE, symbol, orbital)

    def virtual(self, symbol: str, orbital: int) -> ExactIndexAssignment:
        return self._with(IndexSpace.VIRTUAL, symbol, orbital)

    def general(self, symbol: str, orbital: int) -> ExactIndexAssignment:
        return self._with(IndexSpace.GENERAL, symbol, orbital)

    def orbital(self, index: Index) -> int:
        for space, symbol, orbital in self.entries:
            if space is index.space and symbol == index.symbol:
                return orbital
        raise KeyError(
            f"missing exact assignment for {index.symbol} in {index.space.name.lower()}"
        )

    def delta_value(self, left: Index, right: Index) -> float:
        return 1.0 if self.orbital(left) == self.orbital(right) else 0.0


@dataclass(frozen=True)
class Determinant:
    """A Slater determinant stored as an occupation bit mask."""

    occupancy: int = 0

    @classmethod
    def empty(cls) -> Determinant:
        return cls(0)

    def is_occupied(self, orbital: int) -> bool:
        return (self.occupancy >> orbital) & 1 == 1

    def with_occupied(self, orbital: int) -> Determinant:
        return Determinant(self.occupancy | (1 << orbital))

    def with_unoccupied(self, orbital: int) -> Determinant:
        return Determinant(self.occupancy & ~(1 << orbital))

    def occupied_below(self, orbital: int) -> int:
        return bin(self.occupancy & ((1 << orbital) - 1)).count("1")


@dataclass(frozen=True)
class WeightedDeterminant:
    coefficient: float
    state: Determinant


@dataclass(frozen=True)
class ExactState:
    """A linear combination of determinants."""

    amplitudes: tuple[WeightedDeterminant, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "amplitudes", tuple(self.amplitudes))

    @classmethod
    def demo_reference(cls, system: ExactSystem) -> ExactState:
        """Filled core plus an equal-weight superposition of every active occupation."""
        base = Determinant.empty()
        for orbital in range(system.core):
            base = base.with_occupied(system.core_orbital(orbital))

        subsets = 1 << system.active
        coefficient = 1.0 / math.sqrt(subsets)
        amplitudes = []
        for subset in range(subsets):
            state = base
            for bit in range(system.active):
                if (subset >> bit) & 1:
                    state = state.with_occupied(system.active_orbital(bit))
            amplitudes.append(WeightedDeterminant(coefficient, state))
        return cls(tuple(amplitudes))

    def norm(self) -> float:
        """Sum of squared coefficients."""
        return sum(term.coefficient * term.coefficient for term in self.amplitudes)


def _sign(occupied_below: int) -> float:
    return 1.0 if occupied_below % 2 == 0 else -1.0


def apply_create(det: Determinant, orbital: int) -> Optional[WeightedDeterminant]:
    if det.is_occupied(orbital):
        return None
    return WeightedDeterminant(_sign(det.occupied_below(orbital)), det.with_occupied(orbital))


def apply_annihilate(det: Determinant, orbital: int) -> Optional[WeightedDeterminant]:
    if not det.is_occupied(orbital):
        return None
    return WeightedDeterminant(_sign(det.occupied_below(orbital)), det.with_unoccupied(orbital))


def apply_operator_string(
    det: Determinant, ops: Iterable[OrbitalOp]
) -> Optional[WeightedDeterminant]:
    """Apply operators right to left; None when the result vanishes."""
    coefficient = 1.0
    state = det
    for kind, orbital in reversed(list(ops)):
        apply = apply_create if kind is FermionOpKind.CREATE else apply_annihilate
        step = apply(state, orbital)
        if step is None:
            return None
        coefficient *= step.coefficient
        state = step.state
    return WeightedDeterminant(coefficient, state)


def exact_expectation_from_ops(state: ExactState, ops: Iterable[OrbitalOp]) -> float:
    ops = list(ops)
    total = 0.0
    for ket in state.amplitudes:
        image = apply_operator_string(ket.state, ops)
        if image is None:
            continue
        for bra in state.amplitudes:
            if image.state == bra.state:
                total += bra.coefficient * ket.coefficient * image.coefficient
    return total


def exact_expectation_for_product(
    state: ExactState, assignment: ExactIndexAssignment, product: OperatorProduct
) -> float:
    ops = [(op.kind, assignment.orbital(op.index)) for op in product.ops]
    return exact_expectation_from_ops(state, ops)


def exact_gamma(state: ExactState, left: int, right: int) -> float:
    return exact_expectation_from_ops(
        state, [(FermionOpKind.CREATE, left), (FermionOpKind.ANNIHILATE, right)]
    )


def exact_gamma2(
    state: ExactState, left: int, right: int, lower_left: int, lower_right: int
) -> float:
    return exact_expectation_from_ops(
        state,
        [
            (FermionOpKind.CREATE, left),
            (FermionOpKind.CREATE, right),
            (FermionOpKind.ANNIHILATE, lower_left),
            (FermionOpKind.ANNIHILATE, lower_right),
        ],
    )


def evaluate_tensor_term(
    state: ExactState, assignment: ExactIndexAssignment, term: TensorTerm
) -> float:
    """Numerically evaluate a reduced tensor term on an exact state."""
    match term:
        case ZeroTerm():
            return 0.0
        case DeltaTerm(left, right):
            return assignment.delta_value(left, right)
        case GammaTerm(left, right):
            return exact_gamma(state, assignment.orbital(left), assignment.orbital(right))
        case Gamma2Term(left, right, lower_left, lower_right):
            return exact_gamma2(
                state,
                assignment.orbital(left),
                assignment.orbital(right),
                assignment.orbital(lower_left),
                assignment.orbital(lower_right),
            )
        case ProductTerm(factors):
            return math.prod(evaluate_tensor_term(state, assignment, f) for f in factors)
        case SumTerm(terms):
            return sum(
                signed.coefficient * evaluate_tensor_term(state, assignment, signed.term)
                for signed in terms
            )
        case HigherRdmTerm(product=product):
            return exact_expectation_for_product(state, assignment, product)
    raise TypeError(f"cannot evaluate {type(term).__name__}")
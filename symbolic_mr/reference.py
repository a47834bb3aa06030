"""Reduction of operator expectation values over a CAS reference to tensor terms."""

from __future__ import annotations

from dataclasses import dataclass, field

from symbolic_mr.operators import (
    DeltaConstraint,
    FermionOp,
    FermionOpKind,
    Index,
    IndexSpace,
    OperatorProduct,
)
from symbolic_mr.rewrite import (
    NormalOrderedExpr,
    NormalOrderedTerm,
    SimplifyConfig,
    SimplifyError,
    normal_order_product,
)


@dataclass(frozen=True)
class CasReference:
    """A complete-active-space reference wavefunction."""


@dataclass(frozen=True)
class Expectation:
    """An operator product evaluated in a reference state."""

    product: OperatorProduct
    reference: CasReference = field(default_factory=CasReference)


@dataclass(frozen=True)
class MatrixElement:
    """A left excitation, optional Hamiltonian fragment and right excitation."""

    left: OperatorProduct
    hamiltonian: OperatorProduct | None
    right: OperatorProduct
    reference: CasReference = field(default_factory=CasReference)

    def combined_product(self) -> OperatorProduct:
        """Concatenate left, Hamiltonian (if any) and right operators."""
        middle = self.hamiltonian.ops if self.hamiltonian is not None else ()
        return OperatorProduct(self.left.ops + middle + self.right.ops)


class TensorSimplifyError(ValueError):
    """Raised when an expression cannot be reduced to reference tensors."""


class UnsupportedOperatorRankError(TensorSimplifyError):
    """Raised for operator strings of odd length."""


class UnsupportedReferenceCaseError(TensorSimplifyError):
    """Raised for operator structures the reference reduction does not cover."""


class TensorTerm:
    """Base class of reduced tensor expressions."""

    __slots__ = ()


@dataclass(frozen=True)
class ZeroTerm(TensorTerm):
    def __str__(self) -> str:
        return "0"


@dataclass(frozen=True)
class DeltaTerm(TensorTerm):
    left: Index
    right: Index

    def __str__(self) -> str:
        return f"delta({self.left.symbol},{self.right.symbol})"


@dataclass(frozen=True)
class GammaTerm(TensorTerm):
    left: Index
    right: Index

    def __str__(self) -> str:
        return f"gamma({self.left.symbol},{self.right.symbol})"


@dataclass(frozen=True)
class Gamma2Term(TensorTerm):
    left: Index
    right: Index
    lower_left: Index
    lower_right: Index

    def __str__(self) -> str:
        return (
            f"Gamma({self.left.symbol},{self.right.symbol};"
            f"{self.lower_left.symbol},{self.lower_right.symbol})"
        )


@dataclass(frozen=True)
class ProductTerm(TensorTerm):
    factors: tuple[TensorTerm, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "factors", tuple(self.factors))

    def __str__(self) -> str:
        return " * ".join(str(factor) for factor in self.factors)


@dataclass(frozen=True)
class SignedTensorTerm:
    """A tensor term with an integer coefficient."""

    coefficient: int
    term: TensorTerm

    def __str__(self) -> str:
        sign = "- " if self.coefficient < 0 else ""
        magnitude = abs(self.coefficient)
        scale = f"{magnitude} " if magnitude != 1 else ""
        return f"{sign}{scale}{self.term}"


@dataclass(frozen=True)
class SumTerm(TensorTerm):
    terms: tuple[SignedTensorTerm, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "terms", tuple(self.terms))

    def __str__(self) -> str:
        parts: list[str] = []
        for position, signed in enumerate(self.terms):
            negative = signed.coefficient < 0
            if position == 0:
                parts.append("- " if negative else "")
            else:
                parts.append(" - " if negative else " + ")
            magnitude = abs(signed.coefficient)
            if magnitude != 1:
                parts.append(f"{magnitude} ")
            parts.append(str(signed.term))
        return "".join(parts)


@dataclass(frozen=True)
class HigherRdmTerm(TensorTerm):
    min_order: int
    product: OperatorProduct

    def __str__(self) -> str:
        return f"HigherRDM(order={self.min_order}, fragment={self.product})"


@dataclass(frozen=True)
class SimplifiedTensorForm:
    """The final reduced form of an expression."""

    term: TensorTerm

    def __str__(self) -> str:
        return str(self.term)


@dataclass(frozen=True)
class TensorReductionTrace:
    """Intermediate stages of a reference reduction."""

    normal_ordered: NormalOrderedExpr
    reduced_terms: tuple[SignedTensorTerm, ...]
    final_form: SimplifiedTensorForm

    def __post_init__(self) -> None:
        object.__setattr__(self, "reduced_terms", tuple(self.reduced_terms))


def expectation(
    product: OperatorProduct, reference: CasReference | None = None
) -> Expectation:
    return Expectation(product, reference if reference is not None else CasReference())


def matrix_element(
    left: OperatorProduct,
    hamiltonian: OperatorProduct | None,
    right: OperatorProduct,
    reference: CasReference | None = None,
) -> MatrixElement:
    return MatrixElement(
        left, hamiltonian, right, reference if reference is not None else CasReference()
    )


def simplify_tensor_form(
    value: Expectation | DeltaConstraint | MatrixElement,
    config: SimplifyConfig | None = None,
) -> SimplifiedTensorForm:
    """Reduce an expectation, delta constraint or matrix element to tensors."""
    if isinstance(value, Expectation):
        return _trace_product(value.product).final_form
    if isinstance(value, MatrixElement):
        return _trace_product(value.combined_product()).final_form
    if isinstance(value, DeltaConstraint):
        if value.is_contradictory():
            return SimplifiedTensorForm(ZeroTerm())
        return SimplifiedTensorForm(DeltaTerm(value.left, value.right))
    raise TypeError(f"cannot simplify {type(value).__name__}")


def trace_expectation(
    expectation: Expectation, config: SimplifyConfig | None = None
) -> TensorReductionTrace:
    return _trace_product(expectation.product)


def trace_matrix_element(
    matrix_element: MatrixElement, config: SimplifyConfig | None = None
) -> TensorReductionTrace:
    return _trace_product(matrix_element.combined_product())


def _trace_product(product: OperatorProduct) -> TensorReductionTrace:
    try:
        ordered = normal_order_product(product)
    except SimplifyError as error:
        raise UnsupportedReferenceCaseError(str(error)) from error
    reduced = [
        signed for term in ordered.terms for signed in _reduce_reference_term(term)
    ]
    return TensorReductionTrace(ordered, tuple(reduced), _collapse_signed_terms(reduced))


def _assemble(factors: list[TensorTerm]) -> TensorTerm:
    return factors[0] if len(factors) == 1 else ProductTerm(tuple(factors))


def _reduce_reference_term(term: NormalOrderedTerm) -> list[SignedTensorTerm]:
    if any(constraint.is_contradictory() for constraint in term.deltas):
        return []
    common: list[TensorTerm] = [DeltaTerm(d.left, d.right) for d in term.deltas]

    residuals = _reduce_normal_ordered_product(term.product)
    if not residuals:
        if not common:
            return []
        return [SignedTensorTerm(term.coefficient, _assemble(common))]

    return [
        SignedTensorTerm(
            term.coefficient * residual.coefficient,
            _assemble(common + [residual.term]),
        )
        for residual in residuals
    ]


def _is_normal_ordered(ops: tuple[FermionOp, ...]) -> bool:
    for left, right in zip(ops, ops[1:]):
        if left.kind is FermionOpKind.ANNIHILATE and right.kind is FermionOpKind.CREATE:
            return False
        if left.kind is right.kind and left.index.symbol > right.index.symbol:
            return False
    return True


def _reduce_normal_ordered_product(product: OperatorProduct) -> list[SignedTensorTerm]:
    ops = product.ops
    if not ops:
        return []
    if not _is_normal_ordered(ops):
        raise UnsupportedReferenceCaseError("operator string is not normal ordered")
    if any(op.index.space is IndexSpace.VIRTUAL for op in ops):
        return []

    length = len(ops)
    if length == 2:
        return _reduce_one_body(ops)
    if length == 4:
        return _reduce_two_body(ops)
    if length % 2 == 0:
        return _reduce_higher_body(product, length // 2)
    raise UnsupportedOperatorRankError(f"odd operator string of length {length}")


def _reduce_one_body(ops: tuple[FermionOp, ...]) -> list[SignedTensorTerm]:
    first, second = ops
    if first.kind is not FermionOpKind.CREATE or second.kind is not FermionOpKind.ANNIHILATE:
        raise UnsupportedReferenceCaseError("one-body string is not a†a")
    left, right = first.index, second.index
    if IndexSpace.GENERAL in (left.space, right.space):
        raise UnsupportedReferenceCaseError("general index in one-body reduction")

    if left.space is IndexSpace.CORE and right.space is IndexSpace.CORE:
        return [SignedTensorTerm(1, DeltaTerm(left, right))]
    if left.space is IndexSpace.ACTIVE and right.space is IndexSpace.ACTIVE:
        return [SignedTensorTerm(1, GammaTerm(left, right))]
    return []


def _positions(
    ops: tuple[FermionOp, ...], positions: range, space: IndexSpace
) -> list[int]:
    return [position for position in positions if ops[position].index.space is space]


def _permutation_sign(order: list[int]) -> int:
    inversions = sum(
        1
        for i, earlier in enumerate(order)
        for later in order[i + 1 :]
        if earlier > later
    )
    return 1 if inversions % 2 == 0 else -1


def _reduce_two_body(ops: tuple[FermionOp, ...]) -> list[SignedTensorTerm]:
    kinds = [op.kind for op in ops]
    expected = [FermionOpKind.CREATE] * 2 + [FermionOpKind.ANNIHILATE] * 2
    if kinds != expected:
        raise UnsupportedReferenceCaseError("two-body string is not a†a†aa")
    if any(op.index.space is IndexSpace.GENERAL for op in ops):
        raise UnsupportedReferenceCaseError("general index in two-body reduction")

    core_create = _positions(ops, range(0, 2), IndexSpace.CORE)
    core_annihilate = _positions(ops, range(2, 4), IndexSpace.CORE)
    active_create = _positions(ops, range(0, 2), IndexSpace.ACTIVE)
    active_annihilate = _positions(ops, range(2, 4), IndexSpace.ACTIVE)
    idx = [op.index for op in ops]

    if len(active_create) == 2 and len(active_annihilate) == 2:
        return [SignedTensorTerm(1, Gamma2Term(idx[0], idx[1], idx[2], idx[3]))]

    if len(core_create) == 2 and len(core_annihilate) == 2:
        first = ProductTerm((DeltaTerm(idx[0], idx[3]), DeltaTerm(idx[1], idx[2])))
        second = ProductTerm((DeltaTerm(idx[0], idx[2]), DeltaTerm(idx[1], idx[3])))
        return [SignedTensorTerm(1, first), SignedTensorTerm(-1, second)]

    if all(
        len(group) == 1
        for group in (core_create, core_annihilate, active_create, active_annihilate)
    ):
        order = [core_create[0], core_annihilate[0], active_create[0], active_annihilate[0]]
        term = ProductTerm(
            (
                DeltaTerm(idx[core_create[0]], idx[core_annihilate[0]]),
                GammaTerm(idx[active_create[0]], idx[active_annihilate[0]]),
            )
        )
        return [SignedTensorTerm(_permutation_sign(order), term)]

    return []


def _reduce_higher_body(product: OperatorProduct, order: int) -> list[SignedTensorTerm]:
    ops = product.ops
    supported = (
        all(op.kind is FermionOpKind.CREATE for op in ops[:order])
        and all(op.kind is FermionOpKind.ANNIHILATE for op in ops[order:])
        and all(op.index.space is IndexSpace.ACTIVE for op in ops)
    )
    if not supported:
        raise UnsupportedReferenceCaseError("higher-body string is not purely active")
    return [SignedTensorTerm(1, HigherRdmTerm(order, product))]


def _collapse_signed_terms(terms: list[SignedTensorTerm]) -> SimplifiedTensorForm:
    non_zero = [term for term in terms if term.coefficient != 0]
    if not non_zero:
        return SimplifiedTensorForm(ZeroTerm())
    if len(non_zero) == 1:
        only = non_zero[0]
        if only.coefficient == 1:
            return SimplifiedTensorForm(only.term)
        return SimplifiedTensorForm(SumTerm((only,)))
    return SimplifiedTensorForm(SumTerm(tuple(non_zero)))
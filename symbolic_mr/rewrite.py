"""Normal ordering of fermionic operator strings via anticommutation."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, auto

from symbolic_mr.operators import (
    DeltaConstraint,
    FermionOp,
    FermionOpKind,
    Index,
    OperatorProduct,
)


@dataclass(frozen=True)
class SimplifyConfig:
    """Options for simplification; currently carries no settings."""


class SimplifyError(ValueError):
    """Raised when an operator product cannot be normal ordered."""


@dataclass(frozen=True)
class NormalOrderedTerm:
    """A signed product of delta constraints and a normal-ordered operator string."""

    coefficient: int
    deltas: tuple[DeltaConstraint, ...]
    product: OperatorProduct

    def __post_init__(self) -> None:
        object.__setattr__(self, "deltas", tuple(self.deltas))


@dataclass(frozen=True)
class NormalOrderedExpr:
    """A sum of normal-ordered terms."""

    terms: tuple[NormalOrderedTerm, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "terms", tuple(self.terms))

    def __str__(self) -> str:
        parts: list[str] = []
        for position, term in enumerate(self.terms):
            negative = term.coefficient < 0
            magnitude = abs(term.coefficient)
            body = _render_term_body(term)

            if position == 0:
                parts.append("- " if negative else "")
            else:
                parts.append(" - " if negative else " + ")

            if body == "1":
                parts.append(str(magnitude))
            elif magnitude != 1:
                parts.append(f"{magnitude} {body}")
            else:
                parts.append(body)
        return "".join(parts)


SimplifiedOperatorForm = NormalOrderedExpr
SimplifiedTerm = NormalOrderedTerm


def simplify_operator_form(
    product: OperatorProduct, config: SimplifyConfig | None = None
) -> NormalOrderedExpr:
    return normal_order_product(product)


def normal_order_product(product: OperatorProduct) -> NormalOrderedExpr:
    """Rewrite a product into a sum of normal-ordered terms with deltas."""
    if not product.ops:
        raise SimplifyError("empty operator product")
    terms = _normal_order_term(NormalOrderedTerm(1, (), product))
    return NormalOrderedExpr(_combine_like_terms(terms))


class _Action(Enum):
    ZERO = auto()
    SAME_KIND_SWAP = auto()
    MIXED_SWAP = auto()


def _index_key(index: Index) -> tuple[str, int]:
    return (index.symbol, index.space.rank)


def _classify_pair(left: FermionOp, right: FermionOp) -> _Action | None:
    if left.kind is right.kind and left.index == right.index:
        return _Action.ZERO
    if left.kind is FermionOpKind.ANNIHILATE and right.kind is FermionOpKind.CREATE:
        return _Action.MIXED_SWAP
    if left.kind is right.kind and _index_key(left.index) > _index_key(right.index):
        return _Action.SAME_KIND_SWAP
    return None


def _first_rewrite_action(product: OperatorProduct) -> tuple[_Action, int] | None:
    ops = product.ops
    for position, (left, right) in enumerate(zip(ops, ops[1:])):
        action = _classify_pair(left, right)
        if action is not None:
            return action, position
    return None


def _swap_adjacent(product: OperatorProduct, position: int) -> OperatorProduct:
    ops = product.ops
    return OperatorProduct(
        ops[:position] + (ops[position + 1], ops[position]) + ops[position + 2 :]
    )


def _remove_adjacent_pair(product: OperatorProduct, position: int) -> OperatorProduct:
    ops = product.ops
    return OperatorProduct(ops[:position] + ops[position + 2 :])


def _normal_order_term(term: NormalOrderedTerm) -> list[NormalOrderedTerm]:
    if term.coefficient == 0:
        return []

    found = _first_rewrite_action(term.product)
    if found is None:
        return [_canonicalize_term(term)]

    action, position = found
    if action is _Action.ZERO:
        return []

    swapped = NormalOrderedTerm(
        -term.coefficient, term.deltas, _swap_adjacent(term.product, position)
    )
    if action is _Action.SAME_KIND_SWAP:
        return _normal_order_term(swapped)

    ops = term.product.ops
    constraint = DeltaConstraint(ops[position].index, ops[position + 1].index)
    delta_branch = NormalOrderedTerm(
        term.coefficient,
        term.deltas + (constraint,),
        _remove_adjacent_pair(term.product, position),
    )
    return _normal_order_term(delta_branch) + _normal_order_term(swapped)


def _canonicalize_term(term: NormalOrderedTerm) -> NormalOrderedTerm:
    deltas = sorted(
        term.deltas, key=lambda d: (_index_key(d.left), _index_key(d.right))
    )
    return NormalOrderedTerm(term.coefficient, tuple(deltas), term.product.canonicalize())


def _render_delta(constraint: DeltaConstraint) -> str:
    return f"delta({constraint.left.symbol},{constraint.right.symbol})"


def _render_term_body(term: NormalOrderedTerm) -> str:
    factors = [_render_delta(d) for d in term.deltas]
    if term.product.ops:
        factors.append(str(term.product))
    return " ".join(factors) if factors else "1"


def _term_sort_key(term: NormalOrderedTerm) -> tuple:
    return (
        len(term.product.ops),
        len(term.deltas),
        tuple(_render_delta(d) for d in term.deltas),
        str(term.product),
    )


def _combine_like_terms(terms: list[NormalOrderedTerm]) -> tuple[NormalOrderedTerm, ...]:
    combined: list[NormalOrderedTerm] = []
    for term in sorted(terms, key=_term_sort_key):
        if combined:
            last = combined[-1]
            if last.deltas == term.deltas and last.product == term.product:
                combined[-1] = replace(last, coefficient=last.coefficient + term.coefficient)
                continue
        combined.append(term)
    return tuple(term for term in combined if term.coefficient != 0)
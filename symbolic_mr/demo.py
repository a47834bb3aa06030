"""Command-line showcase of reference reductions, traces and exact cross-checks."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from typing import Sequence, Union

from symbolic_mr.exact import (
    ExactIndexAssignment,
    ExactState,
    ExactSystem,
    evaluate_tensor_term,
    exact_expectation_for_product,
)
from symbolic_mr.operators import (
    OperatorProduct,
    active,
    annihilate,
    core,
    create,
    virtual,
)
from symbolic_mr.reference import (
    Expectation,
    MatrixElement,
    SignedTensorTerm,
    TensorReductionTrace,
    expectation,
    matrix_element,
    simplify_tensor_form,
    trace_expectation,
    trace_matrix_element,
)

Expression = Union[Expectation, MatrixElement]

CROSS_CHECK_LABEL_WIDTH = 10
_SAMPLE_SEED = 0x5EED_2026
_MASK_64 = (1 << 64) - 1
_USAGE = (
    "usage:",
    "  symbolic-mr-demo",
    "  symbolic-mr-demo --trace",
    "  symbolic-mr-demo --trace-compact",
    "  symbolic-mr-demo --cross-check",
    "  symbolic-mr-demo --sample <count>",
)


@dataclass
class Lcg:
    """A 64-bit linear congruential generator for reproducible sampling."""

    state: int

    def next_index(self, modulo: int) -> int:
        """Advance the generator and return a value in ``range(modulo)``."""
        self.state = (self.state * 6364136223846793005 + 1) & _MASK_64
        return (self.state >> 32) % modulo


@dataclass(frozen=True)
class _Case:
    label: str
    text: str
    expr: Expression


def _trace(expr: Expression) -> TensorReductionTrace:
    if isinstance(expr, MatrixElement):
        return trace_matrix_element(expr)
    return trace_expectation(expr)


def _product_of(expr: Expression) -> OperatorProduct:
    if isinstance(expr, MatrixElement):
        return expr.combined_product()
    return expr.product


# Shared example expressions.

def _core_one_body() -> Expectation:
    return expectation(create(core("i")) * annihilate(core("j")))


def _active_one_body() -> Expectation:
    return expectation(create(active("u")) * annihilate(active("v")))


def _mixed_one_body() -> Expectation:
    return expectation(create(active("u")) * annihilate(virtual("a")))


def _non_normal_active() -> Expectation:
    return expectation(
        annihilate(active("x"))
        * create(active("u"))
        * create(active("v"))
        * annihilate(active("w"))
    )


def _core_active_two_body() -> Expectation:
    return expectation(
        create(core("i"))
        * create(active("u"))
        * annihilate(core("j"))
        * annihilate(active("v"))
    )


def _core_two_body() -> Expectation:
    return expectation(
        create(core("i"))
        * create(core("j"))
        * annihilate(core("k"))
        * annihilate(core("l"))
    )


def _hamiltonian_matrix_element() -> MatrixElement:
    return matrix_element(
        create(active("u")) * annihilate(virtual("a")),
        create(active("x")) * annihilate(active("y")),
        create(virtual("b")) * annihilate(active("v")),
    )


def _overlap_matrix_element() -> MatrixElement:
    return matrix_element(
        create(active("u")) * annihilate(virtual("a")),
        None,
        create(virtual("b")) * annihilate(active("v")),
    )


def _active_three_body() -> Expectation:
    return expectation(
        create(active("u"))
        * create(active("v"))
        * create(active("w"))
        * annihilate(active("x"))
        * annihilate(active("y"))
        * annihilate(active("z"))
    )


_IN_CORE_ONE = "⟨Ψ_CAS| a†(i) a(j) |Ψ_CAS⟩"
_IN_ACTIVE_ONE = "⟨Ψ_CAS| a†(u) a(v) |Ψ_CAS⟩"
_IN_MIXED_ONE = "⟨Ψ_CAS| a†(u) a(a) |Ψ_CAS⟩"
_IN_NON_NORMAL = "⟨Ψ_CAS| a(x) a†(u) a†(v) a(w) |Ψ_CAS⟩"
_IN_CORE_ACTIVE = "⟨Ψ_CAS| a†(i) a†(u) a(j) a(v) |Ψ_CAS⟩"
_IN_HAMILTONIAN = "⟨Ψ_CAS| a†(u)a(a) (a†(x)a(y)) a†(b)a(v) |Ψ_CAS⟩"
_IN_THREE_BODY = "⟨Ψ_CAS| a†(u)a†(v)a†(w)a(x)a(y)a(z) |Ψ_CAS⟩"


def _curated_sections() -> list[tuple[str, list[_Case]]]:
    return [
        (
            "One-body",
            [
                _Case("core-core expectation", _IN_CORE_ONE, _core_one_body()),
                _Case("active-active expectation", _IN_ACTIVE_ONE, _active_one_body()),
                _Case("mixed one-body expectation", _IN_MIXED_ONE, _mixed_one_body()),
            ],
        ),
        (
            "Two-body",
            [
                _Case("non-normal active expectation", _IN_NON_NORMAL, _non_normal_active()),
                _Case(
                    "core-active mixed expectation", _IN_CORE_ACTIVE, _core_active_two_body()
                ),
            ],
        ),
        (
            "Matrix element",
            [
                _Case(
                    "one-body Hamiltonian in middle",
                    _IN_HAMILTONIAN,
                    _hamiltonian_matrix_element(),
                )
            ],
        ),
        (
            "Higher-body",
            [
                _Case(
                    "active higher-body expectation", _IN_THREE_BODY, _active_three_body()
                )
            ],
        ),
    ]


def _print_header(title: str) -> None:
    print(title)
    print("-" * len(title))


def run_curated_demo() -> None:
    """Print the simplified form of each curated example."""
    for title, cases in _curated_sections():
        _print_header(title)
        for case in cases:
            print(f"case: {case.label}")
            print(f"input: {case.text}")
            print(f"output: {simplify_tensor_form(case.expr)}")
            print()


def _print_reference_reduction(reduced_terms: Sequence[SignedTensorTerm]) -> None:
    if not reduced_terms:
        print("  0")
        return
    for term in reduced_terms:
        print(f"  {term}")


def run_curated_demo_trace() -> None:
    """Print every reduction stage of each curated example."""
    for title, cases in _curated_sections():
        _print_header(title)
        for case in cases:
            trace = _trace(case.expr)
            print(f"case: {case.label}")
            print(f"input: {case.text}")
            print(f"normal ordered: {trace.normal_ordered}")
            print("reference reduction:")
            _print_reference_reduction(trace.reduced_terms)
            print(f"final output: {trace.final_form}")
            print()


def run_curated_demo_trace_compact() -> None:
    """Print a short input/output block per curated example."""
    cases = [
        (_Case("one-body core-core", _IN_CORE_ONE, _core_one_body()), False),
        (_Case("one-body active-active", _IN_ACTIVE_ONE, _active_one_body()), False),
        (_Case("one-body mixed zero", _IN_MIXED_ONE, _mixed_one_body()), False),
        (_Case("non-normal active two-body", _IN_NON_NORMAL, _non_normal_active()), True),
        (
            _Case(
                "matrix element with one-body Hamiltonian",
                _IN_HAMILTONIAN,
                _hamiltonian_matrix_element(),
            ),
            False,
        ),
        (
            _Case("active higher-body expectation", _IN_THREE_BODY, _active_three_body()),
            False,
        ),
    ]
    for case, show_ordered in cases:
        trace = _trace(case.expr)
        print(f"case: {case.label}")
        print(f"in: {case.text}")
        if show_ordered:
            print(f"ordered: {trace.normal_ordered}")
        print(f"out: {trace.final_form}")
        print()


def _cross_check_cases(
    system: ExactSystem,
) -> list[tuple[_Case, ExactIndexAssignment]]:
    assignment = ExactIndexAssignment()
    return [
        (
            _Case(
                "diagonal active one-body",
                "⟨Ψ_CAS| a†(u) a(u) |Ψ_CAS⟩",
                expectation(create(active("u")) * annihilate(active("u"))),
            ),
            assignment.active("u", system.active_orbital(0)),
        ),
        (
            _Case("non-normal active two-body", _IN_NON_NORMAL, _non_normal_active()),
            assignment.active("x", system.active_orbital(0))
            .active("u", system.active_orbital(0))
            .active("v", system.active_orbital(1))
            .active("w", system.active_orbital(1)),
        ),
        (
            _Case(
                "matrix element with one-body Hamiltonian",
                _IN_HAMILTONIAN,
                _hamiltonian_matrix_element(),
            ),
            assignment.active("u", system.active_orbital(0))
            .active("x", system.active_orbital(1))
            .active("y", system.active_orbital(0))
            .active("v", system.active_orbital(1))
            .virtual("a", system.virtual_orbital(0))
            .virtual("b", system.virtual_orbital(0)),
        ),
        (
            _Case("active higher-body", _IN_THREE_BODY, _active_three_body()),
            assignment.active("u", system.active_orbital(0))
            .active("v", system.active_orbital(1))
            .active("w", system.active_orbital(2))
            .active("x", system.active_orbital(0))
            .active("y", system.active_orbital(1))
            .active("z", system.active_orbital(2)),
        ),
    ]


def _print_cross_check_field(label: str, content: str) -> None:
    lines = content.splitlines()
    if not lines:
        print(label)
        return
    first, *rest = lines
    print(f"{label:<{CROSS_CHECK_LABEL_WIDTH}}{first}")
    continuation = " " * CROSS_CHECK_LABEL_WIDTH
    for line in rest:
        print(f"{continuation}{line}")


def run_curated_demo_cross_check() -> None:
    """Compare symbolic reductions with exact evaluation on a small model state."""
    system = ExactSystem()
    state = ExactState.demo_reference(system)

    for case, assignment in _cross_check_cases(system):
        trace = _trace(case.expr)
        exact = exact_expectation_for_product(state, assignment, _product_of(case.expr))
        symbolic = evaluate_tensor_term(state, assignment, trace.final_form.term)
        if abs(exact - symbolic) >= 1.0e-9:
            raise RuntimeError(
                f"cross-check mismatch in {case.label}: "
                f"exact={exact}, symbolic={symbolic}"
            )

        _print_cross_check_field("case:", case.label)
        _print_cross_check_field("in:", case.text)
        _print_cross_check_field(
            "ordered:", format_cross_check_expression(str(trace.normal_ordered))
        )
        _print_cross_check_field(
            "out:", format_cross_check_expression(str(trace.final_form))
        )
        _print_cross_check_field(
            "check:",
            f"exact = {format_numeric_value(exact)}, "
            f"symbolic = {format_numeric_value(symbolic)}",
        )
        print()


def _sampled_case(choice: int) -> tuple[str, str, Expression]:
    samples: list[tuple[str, str, Expression]] = [
        ("one-body", _IN_CORE_ONE, _core_one_body()),
        ("one-body", _IN_ACTIVE_ONE, _active_one_body()),
        ("one-body", _IN_MIXED_ONE, _mixed_one_body()),
        ("two-body", _IN_CORE_ACTIVE, _core_active_two_body()),
        ("two-body", "⟨Ψ_CAS| a†(i) a†(j) a(k) a(l) |Ψ_CAS⟩", _core_two_body()),
        (
            "matrix-element",
            "⟨Ψ_CAS| a†(u)a(a) a†(b)a(v) |Ψ_CAS⟩",
            _overlap_matrix_element(),
        ),
        ("matrix-element", _IN_HAMILTONIAN, _hamiltonian_matrix_element()),
    ]
    return samples[min(choice, len(samples) - 1)]


def run_sampled_validation(count: int) -> None:
    """Print ``count`` pseudo-randomly chosen examples with their simplified forms."""
    _print_header("Sampled validation")
    rng = Lcg(_SAMPLE_SEED)
    for sample_number in range(1, count + 1):
        category, text, expr = _sampled_case(rng.next_index(7))
        print(f"sample {sample_number}:")
        print(f"category: {category}")
        print(f"input: {text}")
        print(f"output: {simplify_tensor_form(expr)}")
        print()


def format_numeric_value(value: float) -> str:
    """Three decimals, with values indistinguishable from zero shown as 0.000."""
    sanitized = 0.0 if abs(value) < 1.0e-12 else value
    return f"{sanitized:.3f}"


def format_cross_check_expression(content: str) -> str:
    """Break a rendered expression into one summand per line."""
    if content.startswith("HigherRDM("):
        return content.replace(", fragment=", ",\nfragment=")
    return "\n".join(split_sum_terms(content))


_SUM_SEPARATOR = re.compile(r" [+-] ")


def split_sum_terms(content: str) -> list[str]:
    """Split at top-level ' + ' and ' - ', keeping each sign with its term."""
    parts: list[str] = []
    start = 0
    for match in _SUM_SEPARATOR.finditer(content):
        term = content[start : match.start()].strip()
        if term:
            parts.append(term)
        start = match.start() + 1
    tail = content[start:].strip()
    if tail:
        parts.append(tail)
    return parts or [content]


def _print_usage() -> None:
    for line in _USAGE:
        print(line, file=sys.stderr)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the demo selected by the command-line flags."""
    args = list(sys.argv[1:] if argv is None else argv)

    if not args:
        run_curated_demo()
    elif args == ["--trace"]:
        run_curated_demo_trace()
    elif args == ["--trace-compact"]:
        run_curated_demo_trace_compact()
    elif args == ["--cross-check"]:
        run_curated_demo_cross_check()
    elif len(args) == 2 and args[0] == "--sample":
        if not re.fullmatch(r"\+?\d+", args[1]):
            print("--sample requires a positive integer", file=sys.stderr)
            return 2
        run_sampled_validation(int(args[1]))
    else:
        _print_usage()
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
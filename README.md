# symbolic_mr

Symbolic manipulation of fermionic creation/annihilation operator strings, with reduction of
expectation values and matrix elements against a CAS (complete active space) reference.

Orbital indices belong to one of four spaces: core, active, virtual or general. Operator strings
are normal ordered by anticommutation: swapping two adjacent operators of the same kind flips the
sign, and moving an annihilator past a creator adds a branch with a Kronecker delta. The
normal-ordered terms are then reduced against the reference:

- core–core one-body terms become `delta(i,j)`
- active–active one-body terms become `gamma(u,v)`
- active two-body terms become `Gamma(u,v;w,x)`
- core two-body terms become a signed sum of delta products
- one core and one active pair become a signed `delta * gamma` product
- terms with an uncontracted virtual index, or with a delta between different non-general
  spaces, vanish
- purely active strings of higher rank are kept as `HigherRDM(order=n, fragment=...)`

Cases the reduction does not cover raise an error instead of being turned into zero:
`UnsupportedReferenceCaseError` (for example strings over general indices, or an empty
product) and `UnsupportedOperatorRankError` (odd-length strings). Both derive from
`TensorSimplifyError`, itself a `ValueError`.

## Installation

```
pip install .
```

The package has no runtime dependencies. To install the test tools as well:

```
pip install ".[test]"
```

## Modules

- `symbolic_mr.operators` – `Index`, `IndexSpace`, `FermionOp`, `OperatorProduct`,
  `DeltaConstraint` and the builders `core`, `active`, `virtual`, `general`, `create`,
  `annihilate`, `operator_string`, `delta`. Operators multiply with `*` into products.
- `symbolic_mr.rewrite` – `normal_order_product` and `simplify_operator_form`, returning a
  `NormalOrderedExpr` of `NormalOrderedTerm`s; `SimplifyError` for an empty product.
- `symbolic_mr.reference` – `expectation`, `matrix_element`, `simplify_tensor_form`,
  `trace_expectation`, `trace_matrix_element` and the tensor term classes (`ZeroTerm`,
  `DeltaTerm`, `GammaTerm`, `Gamma2Term`, `ProductTerm`, `SumTerm`, `HigherRdmTerm`).
- `symbolic_mr.exact` – exact evaluation on small determinant spaces: `ExactSystem`,
  `ExactState`, `ExactIndexAssignment`, `Determinant`, `apply_create`, `apply_annihilate`,
  `exact_expectation_for_product`, `evaluate_tensor_term` and related helpers.
- `symbolic_mr.fixtures` – JSON fixture suites of encoded operator strings
  (`create(u:active)`, `annihilate(a:virtual)`, ...) with their expected reductions.
- `symbolic_mr.demo` – the command-line showcase.

## Usage

### Normal ordering

```python
from symbolic_mr.operators import general, create, annihilate
from symbolic_mr.rewrite import normal_order_product

p, q = general("p"), general("q")
print(normal_order_product(annihilate(p) * create(q)))
# delta(p,q) - a†(q) a(p)
```

### Reducing an expectation value

```python
from symbolic_mr.operators import active, create, annihilate
from symbolic_mr.reference import CasReference, expectation, simplify_tensor_form

expr = expectation(
    annihilate(active("x")) * create(active("u")) * create(active("v")) * annihilate(active("w")),
    CasReference(),
)
print(simplify_tensor_form(expr))
# delta(x,u) * gamma(v,w) - delta(x,v) * gamma(u,w) - Gamma(u,v;w,x)
```

`simplify_tensor_form` also accepts a `DeltaConstraint`: a delta between two different
non-general spaces reduces to `0`.

### Matrix elements

```python
from symbolic_mr.operators import active, virtual, create, annihilate
from symbolic_mr.reference import matrix_element, simplify_tensor_form

element = matrix_element(
    create(active("u")) * annihilate(virtual("a")),
    create(active("x")) * annihilate(active("y")),
    create(virtual("b")) * annihilate(active("v")),
)
print(simplify_tensor_form(element))
# - delta(a,b) * Gamma(u,x;v,y)
```

Pass `None` as the Hamiltonian for a plain overlap. `trace_expectation` and
`trace_matrix_element` return a `TensorReductionTrace` with the intermediate stages:
`normal_ordered`, `reduced_terms` and `final_form`.

### Exact evaluation

```python
from symbolic_mr.exact import (
    ExactIndexAssignment, ExactState, ExactSystem,
    evaluate_tensor_term, exact_expectation_for_product,
)
from symbolic_mr.operators import active, create, annihilate
from symbolic_mr.reference import expectation, simplify_tensor_form

system = ExactSystem()                     # 2 core, 3 active, 2 virtual orbitals
state = ExactState.demo_reference(system)  # filled core, equal-weight active occupations
assignment = ExactIndexAssignment().active("u", system.active_orbital(0))

product = create(active("u")) * annihilate(active("u"))
reduced = simplify_tensor_form(expectation(product))
print(exact_expectation_for_product(state, assignment, product))  # 0.5
print(evaluate_tensor_term(state, assignment, reduced.term))      # 0.5
```

## Command line

Run the curated demonstration:

```
symbolic-mr-demo
symbolic-mr-demo --trace
symbolic-mr-demo --trace-compact
symbolic-mr-demo --cross-check
symbolic-mr-demo --sample 5
```

`--trace` prints every reduction stage, `--trace-compact` a short block per example.
`--cross-check` compares each symbolic result with an exact evaluation on the model state
above. `--sample N` prints N cases picked by a fixed-seed generator, so the output is the
same on every run. Unknown arguments print the usage and exit with status 2.

Write the JSON fixture suites (`reference_one_body`, `reference_two_body`,
`matrix_element`) to `tests/fixtures`, relative to the current directory, or to a directory
given as the only argument:

```
symbolic-mr-update-fixtures
symbolic-mr-update-fixtures path/to/fixtures
```

## What it does not do

The package works with symbols only. It does not read molecular integrals, compute numerical
reduced density matrices of real wavefunctions, or build Hamiltonians; the exact evaluator is
limited to the small determinant models in `symbolic_mr.exact`. Higher-rank active strings are
marked as `HigherRDM` terms but not decomposed further.

## Tests

```
pytest
```
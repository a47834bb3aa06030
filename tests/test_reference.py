import pytest
from hypothesis import given
from hypothesis import strategies as st

from symbolic_mr.operators import (
    FermionOpKind,
    IndexSpace,
    active,
    annihilate,
    core,
    create,
    delta,
    general,
    operator_string,
    virtual,
)
from symbolic_mr.reference import (
    CasReference,
    DeltaTerm,
    GammaTerm,
    Gamma2Term,
    HigherRdmTerm,
    ProductTerm,
    SignedTensorTerm,
    SumTerm,
    UnsupportedOperatorRankError,
    UnsupportedReferenceCaseError,
    ZeroTerm,
    expectation,
    matrix_element,
    simplify_tensor_form,
    trace_expectation,
    trace_matrix_element,
)

# Exact Fock-space evaluation: 2 core, 2 active, 2 virtual orbitals.
_ORBITALS = {
    IndexSpace.CORE: {"i": 0, "j": 1},
    IndexSpace.ACTIVE: {"u": 2, "v": 3},
    IndexSpace.VIRTUAL: {"a": 4, "b": 5},
    IndexSpace.GENERAL: {"p": 0, "q": 1, "r": 2, "s": 3},
}
_REFERENCE_STATE = [(0.5, 0b0011), (0.5, 0b0111), (0.5, 0b1011), (0.5, 0b1111)]


def _orbital(index):
    return _ORBITALS[index.space][index.symbol]


def _apply(det, ops):
    coefficient = 1.0
    for kind, orbital in reversed(ops):
        occupied = bool((det >> orbital) & 1)
        if (kind is FermionOpKind.CREATE) == occupied:
            return None
        below = bin(det & ((1 << orbital) - 1)).count("1")
        coefficient *= -1.0 if below % 2 else 1.0
        det ^= 1 << orbital
    return coefficient, det


def _exact_from_ops(ops):
    total = 0.0
    for bra_coefficient, bra in _REFERENCE_STATE:
        for ket_coefficient, ket in _REFERENCE_STATE:
            image = _apply(ket, ops)
            if image is not None and image[1] == bra:
                total += bra_coefficient * ket_coefficient * image[0]
    return total


def _exact_for_product(product):
    return _exact_from_ops([(op.kind, _orbital(op.index)) for op in product])


def _evaluate(term):
    if isinstance(term, ZeroTerm):
        return 0.0
    if isinstance(term, DeltaTerm):
        return 1.0 if _orbital(term.left) == _orbital(term.right) else 0.0
    if isinstance(term, GammaTerm):
        return _exact_from_ops(
            [
                (FermionOpKind.CREATE, _orbital(term.left)),
                (FermionOpKind.ANNIHILATE, _orbital(term.right)),
            ]
        )
    if isinstance(term, Gamma2Term):
        return _exact_from_ops(
            [
                (FermionOpKind.CREATE, _orbital(term.left)),
                (FermionOpKind.CREATE, _orbital(term.right)),
                (FermionOpKind.ANNIHILATE, _orbital(term.lower_left)),
                (FermionOpKind.ANNIHILATE, _orbital(term.lower_right)),
            ]
        )
    if isinstance(term, ProductTerm):
        result = 1.0
        for factor in term.factors:
            result *= _evaluate(factor)
        return result
    if isinstance(term, SumTerm):
        return sum(signed.coefficient * _evaluate(signed.term) for signed in term.terms)
    if isinstance(term, HigherRdmTerm):
        return _exact_for_product(term.product)
    raise AssertionError(f"unexpected term {term!r}")


_cores = st.sampled_from([core("i"), core("j")])
_actives = st.sampled_from([active("u"), active("v")])
_virtuals = st.sampled_from([virtual("a"), virtual("b")])


def _pair(left, right):
    return create(left) * annihilate(right)


def _two_body(a, b, c, d):
    return operator_string([create(a), create(b), annihilate(c), annihilate(d)])


_one_body_supported = st.one_of(
    st.builds(_pair, _cores, _cores), st.builds(_pair, _actives, _actives)
)
_two_body_active = st.builds(_two_body, _actives, _actives, _actives, _actives)
_two_body_mixed = st.builds(_two_body, _cores, _actives, _cores, _actives)
_supported = st.one_of(_one_body_supported, _two_body_active, _two_body_mixed)

_virtual_zero = st.one_of(
    st.builds(_pair, _virtuals, _virtuals),
    st.builds(_two_body, _virtuals, _actives, _actives, _virtuals),
    st.just(
        operator_string(
            [
                create(active("u")),
                create(active("v")),
                create(virtual("a")),
                annihilate(virtual("b")),
                annihilate(active("v")),
                annihilate(active("u")),
            ]
        )
    ),
)

_unsupported_general = st.sampled_from(
    [
        create(general("p")) * annihilate(general("p")),
        create(general("p")) * annihilate(general("q")),
        operator_string(
            [
                create(general("p")),
                create(general("q")),
                annihilate(active("u")),
                annihilate(general("r")),
            ]
        ),
        _two_body(general("p"), general("q"), general("r"), general("s")),
    ]
)


def test_contradictory_space_equalities_reduce_to_zero():
    result = simplify_tensor_form(delta(core("i"), virtual("a")))
    assert str(result) == "0"
    assert result.term == ZeroTerm()


def test_consistent_delta_survives():
    result = simplify_tensor_form(delta(core("i"), core("j")))
    assert result.term == DeltaTerm(core("i"), core("j"))
    assert str(result) == "delta(i,j)"


def test_simplification_is_deterministic_and_idempotent():
    expr = expectation(create(active("u")) * annihilate(active("v")), CasReference())
    once = str(simplify_tensor_form(expr))
    twice = str(simplify_tensor_form(expr))
    assert once == twice == "gamma(u,v)"


def test_marks_terms_that_need_higher_rdms():
    expr = expectation(
        create(active("u"))
        * create(active("v"))
        * create(active("w"))
        * annihilate(active("z"))
        * annihilate(active("y"))
        * annihilate(active("x")),
        CasReference(),
    )
    rendered = str(simplify_tensor_form(expr))
    assert "HigherRDM(order=3" in rendered
    assert rendered.startswith("- ")


def test_smoke_builds_a_simple_expectation():
    expr = expectation(create(active("u")) * annihilate(active("v")), CasReference())
    assert "Expectation" in repr(expr)
    assert expr.product == operator_string(
        [create(active("u")), annihilate(active("v"))]
    )


@pytest.mark.parametrize(
    "product, expected",
    [
        (_pair(active("u"), active("v")), "gamma(u,v)"),
        (_pair(virtual("a"), virtual("b")), "0"),
        (_pair(core("i"), core("j")), "delta(i,j)"),
        (_pair(core("i"), active("u")), "0"),
        (_pair(active("u"), virtual("a")), "0"),
        (annihilate(active("v")) * create(active("u")), "delta(v,u) - gamma(u,v)"),
        (annihilate(core("j")) * create(core("i")), "delta(j,i) - delta(i,j)"),
        (
            _two_body(active("u"), active("v"), active("w"), active("x")),
            "Gamma(u,v;w,x)",
        ),
        (
            _two_body(core("i"), core("j"), core("k"), core("l")),
            "delta(i,l) * delta(j,k) - delta(i,k) * delta(j,l)",
        ),
        (
            _two_body(core("i"), active("u"), core("j"), active("v")),
            "- delta(i,j) * gamma(u,v)",
        ),
        (
            _two_body(virtual("a"), active("u"), active("v"), virtual("b")),
            "0",
        ),
        (
            annihilate(active("x"))
            * create(active("u"))
            * create(active("v"))
            * annihilate(active("w")),
            "delta(x,u) * gamma(v,w) - delta(x,v) * gamma(u,w) - Gamma(u,v;w,x)",
        ),
        (
            create(active("u"))
            * create(core("i"))
            * annihilate(core("j"))
            * annihilate(active("v")),
            "delta(i,j) * gamma(u,v)",
        ),
    ],
)
def test_pinned_expectation_reductions(product, expected):
    assert str(simplify_tensor_form(expectation(product))) == expected


@pytest.mark.parametrize(
    "hamiltonian, right, expected",
    [
        (None, _pair(virtual("b"), active("v")), "delta(a,b) * gamma(u,v)"),
        (
            None,
            annihilate(active("v")) * create(virtual("b")),
            "- delta(a,b) * gamma(u,v)",
        ),
        (
            _pair(active("x"), active("y")),
            _pair(virtual("b"), active("v")),
            "- delta(a,b) * Gamma(u,x;v,y)",
        ),
    ],
)
def test_matrix_element_reductions(hamiltonian, right, expected):
    element = matrix_element(
        _pair(active("u"), virtual("a")), hamiltonian, right, CasReference()
    )
    assert str(simplify_tensor_form(element)) == expected


def test_matrix_element_combined_product_concatenates_parts():
    element = matrix_element(
        _pair(active("u"), virtual("a")),
        _pair(active("x"), active("y")),
        _pair(virtual("b"), active("v")),
        CasReference(),
    )
    assert element.combined_product() == operator_string(
        [
            create(active("u")),
            annihilate(virtual("a")),
            create(active("x")),
            annihilate(active("y")),
            create(virtual("b")),
            annihilate(active("v")),
        ]
    )


def test_trace_expectation_reports_stages():
    expr = expectation(
        annihilate(active("x"))
        * create(active("u"))
        * create(active("v"))
        * annihilate(active("w"))
    )
    trace = trace_expectation(expr)
    assert str(trace.normal_ordered) == (
        "delta(x,u) a†(v) a(w) - delta(x,v) a†(u) a(w) - a†(u) a†(v) a(w) a(x)"
    )
    assert [str(term) for term in trace.reduced_terms] == [
        "delta(x,u) * gamma(v,w)",
        "- delta(x,v) * gamma(u,w)",
        "- Gamma(u,v;w,x)",
    ]
    assert str(trace.final_form) == (
        "delta(x,u) * gamma(v,w) - delta(x,v) * gamma(u,w) - Gamma(u,v;w,x)"
    )


def test_trace_matrix_element_matches_simplification():
    element = matrix_element(
        _pair(active("u"), virtual("a")),
        _pair(active("x"), active("y")),
        _pair(virtual("b"), active("v")),
    )
    trace = trace_matrix_element(element)
    assert str(trace.normal_ordered).startswith("delta(a,x) delta(y,b) a†(u) a(v)")
    assert trace.final_form == simplify_tensor_form(element)


def test_signed_term_rendering_with_magnitude():
    term = SignedTensorTerm(-2, GammaTerm(active("u"), active("v")))
    assert str(term) == "- 2 gamma(u,v)"
    total = SumTerm((SignedTensorTerm(3, ZeroTerm()), term))
    assert str(total) == "3 0 - 2 gamma(u,v)"


def test_odd_rank_is_rejected():
    with pytest.raises(UnsupportedOperatorRankError):
        simplify_tensor_form(expectation(operator_string([create(active("u"))])))


def test_empty_product_is_unsupported():
    with pytest.raises(UnsupportedReferenceCaseError):
        simplify_tensor_form(expectation(operator_string([])))


def test_unknown_input_type_raises():
    with pytest.raises(TypeError):
        simplify_tensor_form("gamma")


@given(_supported)
def test_supported_reference_reduction_matches_exact_expectation(product):
    simplified = simplify_tensor_form(expectation(product, CasReference()))
    assert abs(_exact_for_product(product) - _evaluate(simplified.term)) < 1.0e-9


@given(_virtual_zero)
def test_mathematically_zero_cases_remain_zero(product):
    simplified = simplify_tensor_form(expectation(product, CasReference()))
    assert abs(_exact_for_product(product)) < 1.0e-9
    assert abs(_evaluate(simplified.term)) < 1.0e-9
    assert str(simplified) == "0"


@given(_unsupported_general)
def test_unsupported_general_cases_return_error(product):
    with pytest.raises(UnsupportedReferenceCaseError):
        simplify_tensor_form(expectation(product, CasReference()))


def test_unsupported_higher_body_cases_return_error():
    product = operator_string(
        [
            create(core("i")),
            create(active("u")),
            create(active("v")),
            annihilate(active("v")),
            annihilate(active("u")),
            annihilate(core("j")),
        ]
    )
    with pytest.raises(UnsupportedReferenceCaseError):
        simplify_tensor_form(expectation(product, CasReference()))


def test_general_diagonal_one_body_is_not_silently_zeroed():
    product = create(general("p")) * annihilate(general("p"))
    assert abs(_exact_for_product(product)) > 1.0e-9
    with pytest.raises(UnsupportedReferenceCaseError):
        simplify_tensor_form(expectation(product, CasReference()))


def test_active_three_body_structure_survives_as_higher_rdm():
    product = operator_string(
        [
            create(active("u")),
            create(active("v")),
            create(active("u")),
            annihilate(active("u")),
            annihilate(active("v")),
            annihilate(active("u")),
        ]
    )
    simplified = simplify_tensor_form(expectation(product, CasReference()))
    assert abs(_exact_for_product(product) - _evaluate(simplified.term)) < 1.0e-9
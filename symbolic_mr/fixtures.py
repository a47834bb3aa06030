"""JSON fixture suites of reference reductions and their conversion to expressions."""

from __future__ import annotations

import argparse
import json
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from symbolic_mr.operators import (
    FermionOp,
    Index,
    active,
    annihilate,
    core,
    create,
    general,
    operator_string,
    virtual,
)
from symbolic_mr.reference import (
    CasReference,
    Expectation,
    MatrixElement,
    expectation,
    matrix_element,
)

DEFAULT_FIXTURE_DIRECTORY = Path("tests/fixtures")


class FixtureError(ValueError):
    """Raised for malformed fixture files or encoded operators."""


def _field(data: Any, key: str, kind: type) -> Any:
    if not isinstance(data, Mapping):
        raise FixtureError(f"expected a JSON object, got {type(data).__name__}")
    if key not in data:
        raise FixtureError(f"missing field {key!r}")
    value = data[key]
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise FixtureError(f"field {key!r} must be of type {kind.__name__}")
    return value


def _string_list(value: Any, key: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise FixtureError(f"field {key!r} must be a list of strings")
    return list(value)


def _version(data: Any) -> int:
    version = _field(data, "version", int)
    if version < 0:
        raise FixtureError("field 'version' must not be negative")
    return version


@dataclass
class FixtureCase:
    """An encoded operator string and the expected reduced output."""

    name: str
    input: list[str]
    expected: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "input": list(self.input), "expected": self.expected}

    @classmethod
    def from_dict(cls, data: Any) -> FixtureCase:
        return cls(
            name=_field(data, "name", str),
            input=_string_list(_field(data, "input", list), "input"),
            expected=_field(data, "expected", str),
        )


@dataclass
class FixtureSuite:
    """A named, versioned list of expectation fixture cases."""

    version: int
    suite: str
    cases: list[FixtureCase]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "suite": self.suite,
            "cases": [case.to_dict() for case in self.cases],
        }

    @classmethod
    def from_dict(cls, data: Any) -> FixtureSuite:
        return cls(
            version=_version(data),
            suite=_field(data, "suite", str),
            cases=[FixtureCase.from_dict(case) for case in _field(data, "cases", list)],
        )


@dataclass
class MatrixElementFixtureCase:
    """Encoded left, optional Hamiltonian and right strings with the expected output."""

    name: str
    left: list[str]
    hamiltonian: list[str] | None
    right: list[str]
    expected: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "left": list(self.left),
            "hamiltonian": None if self.hamiltonian is None else list(self.hamiltonian),
            "right": list(self.right),
            "expected": self.expected,
        }

    @classmethod
    def from_dict(cls, data: Any) -> MatrixElementFixtureCase:
        raw_hamiltonian = data.get("hamiltonian") if isinstance(data, Mapping) else None
        hamiltonian = (
            None if raw_hamiltonian is None else _string_list(raw_hamiltonian, "hamiltonian")
        )
        return cls(
            name=_field(data, "name", str),
            left=_string_list(_field(data, "left", list), "left"),
            hamiltonian=hamiltonian,
            right=_string_list(_field(data, "right", list), "right"),
            expected=_field(data, "expected", str),
        )


@dataclass
class MatrixElementFixtureSuite:
    """A named, versioned list of matrix-element fixture cases."""

    version: int
    suite: str
    cases: list[MatrixElementFixtureCase]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "suite": self.suite,
            "cases": [case.to_dict() for case in self.cases],
        }

    @classmethod
    def from_dict(cls, data: Any) -> MatrixElementFixtureSuite:
        return cls(
            version=_version(data),
            suite=_field(data, "suite", str),
            cases=[
                MatrixElementFixtureCase.from_dict(case)
                for case in _field(data, "cases", list)
            ],
        )


def build_reference_one_body_suite() -> FixtureSuite:
    return FixtureSuite(
        version=1,
        suite="reference_one_body",
        cases=[
            FixtureCase(
                "active_to_gamma",
                ["create(u:active)", "annihilate(v:active)"],
                "gamma(u,v)",
            ),
            FixtureCase(
                "virtual_to_zero",
                ["create(a:virtual)", "annihilate(b:virtual)"],
                "0",
            ),
            FixtureCase(
                "core_to_delta",
                ["create(i:core)", "annihilate(j:core)"],
                "delta(i,j)",
            ),
            FixtureCase(
                "core_active_mixed_to_zero",
                ["create(i:core)", "annihilate(u:active)"],
                "0",
            ),
            FixtureCase(
                "active_virtual_mixed_to_zero",
                ["create(u:active)", "annihilate(a:virtual)"],
                "0",
            ),
        ],
    )


def build_reference_two_body_suite() -> FixtureSuite:
    return FixtureSuite(
        version=1,
        suite="reference_two_body",
        cases=[
            FixtureCase(
                "active_to_gamma2",
                [
                    "create(u:active)",
                    "create(v:active)",
                    "annihilate(w:active)",
                    "annihilate(x:active)",
                ],
                "Gamma(u,v;w,x)",
            ),
            FixtureCase(
                "core_to_delta_delta",
                [
                    "create(i:core)",
                    "create(j:core)",
                    "annihilate(k:core)",
                    "annihilate(l:core)",
                ],
                "delta(i,l) * delta(j,k) - delta(i,k) * delta(j,l)",
            ),
            FixtureCase(
                "core_active_to_signed_delta_gamma",
                [
                    "create(i:core)",
                    "create(u:active)",
                    "annihilate(j:core)",
                    "annihilate(v:active)",
                ],
                "- delta(i,j) * gamma(u,v)",
            ),
            FixtureCase(
                "virtual_containing_two_body_to_zero",
                [
                    "create(a:virtual)",
                    "create(u:active)",
                    "annihilate(v:active)",
                    "annihilate(b:virtual)",
                ],
                "0",
            ),
        ],
    )


def build_matrix_element_suite() -> MatrixElementFixtureSuite:
    return MatrixElementFixtureSuite(
        version=1,
        suite="matrix_element",
        cases=[
            MatrixElementFixtureCase(
                "canonical_overlap_like",
                ["create(u:active)", "annihilate(a:virtual)"],
                None,
                ["create(b:virtual)", "annihilate(v:active)"],
                "delta(a,b) * gamma(u,v)",
            ),
            MatrixElementFixtureCase(
                "right_requires_normal_ordering",
                ["create(u:active)", "annihilate(a:virtual)"],
                None,
                ["annihilate(v:active)", "create(b:virtual)"],
                "- delta(a,b) * gamma(u,v)",
            ),
            MatrixElementFixtureCase(
                "one_body_hamiltonian_in_middle",
                ["create(u:active)", "annihilate(a:virtual)"],
                ["create(x:active)", "annihilate(y:active)"],
                ["create(b:virtual)", "annihilate(v:active)"],
                "- delta(a,b) * Gamma(u,x;v,y)",
            ),
        ],
    )


def fixture_path(suite_name: str, directory: str | Path | None = None) -> Path:
    """Path of the JSON file that holds the named suite."""
    base = DEFAULT_FIXTURE_DIRECTORY if directory is None else Path(directory)
    return base / f"{suite_name}.json"


def _write_json(name: str, payload: dict[str, Any], directory: str | Path | None) -> Path:
    path = fixture_path(name, directory)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path


def _read_json(suite_name: str, directory: str | Path | None) -> Any:
    text = fixture_path(suite_name, directory).read_text(encoding="utf-8")
    try:
        return json.loads(text)
    except json.JSONDecodeError as error:
        raise FixtureError(f"invalid JSON in fixture {suite_name!r}: {error}") from error


def write_fixture_suite(suite: FixtureSuite, directory: str | Path | None = None) -> Path:
    return _write_json(suite.suite, suite.to_dict(), directory)


def load_fixture_suite(suite_name: str, directory: str | Path | None = None) -> FixtureSuite:
    return FixtureSuite.from_dict(_read_json(suite_name, directory))


def write_matrix_element_fixture_suite(
    suite: MatrixElementFixtureSuite, directory: str | Path | None = None
) -> Path:
    return _write_json(suite.suite, suite.to_dict(), directory)


def load_matrix_element_fixture_suite(
    suite_name: str, directory: str | Path | None = None
) -> MatrixElementFixtureSuite:
    return MatrixElementFixtureSuite.from_dict(_read_json(suite_name, directory))


_SPACES = {"active": active, "core": core, "virtual": virtual, "general": general}
_KINDS = {"create": create, "annihilate": annihilate}


def _parse_index(symbol: str, space: str) -> Index:
    try:
        return _SPACES[space](symbol)
    except KeyError:
        raise FixtureError(f"unsupported fixture space: {space}") from None


def parse_op(encoded: str) -> FermionOp:
    """Decode an operator written as ``kind(symbol:space)``."""
    kind, separator, rest = encoded.partition("(")
    if not separator or not rest.endswith(")"):
        raise FixtureError(f"invalid fixture op: {encoded}")
    symbol, separator, space = rest[:-1].partition(":")
    if not separator:
        raise FixtureError(f"invalid fixture op payload: {encoded}")

    index = _parse_index(symbol, space)
    if kind not in _KINDS:
        raise FixtureError(f"unsupported fixture op kind: {kind}")
    return _KINDS[kind](index)


def _parse_ops(encoded_ops: Iterable[str]) -> list[FermionOp]:
    return [parse_op(encoded) for encoded in encoded_ops]


def build_expectation_from_fixture_case(
    case: FixtureCase, reference: CasReference | None = None
) -> Expectation:
    return expectation(operator_string(_parse_ops(case.input)), reference)


def build_matrix_element_from_fixture_case(
    case: MatrixElementFixtureCase, reference: CasReference | None = None
) -> MatrixElement:
    left = operator_string(_parse_ops(case.left))
    hamiltonian = (
        None if case.hamiltonian is None else operator_string(_parse_ops(case.hamiltonian))
    )
    right = operator_string(_parse_ops(case.right))
    return matrix_element(left, hamiltonian, right, reference)


def main(argv: list[str] | None = None) -> int:
    """Regenerate every fixture suite on disk."""
    parser = argparse.ArgumentParser(
        prog="update-fixtures", description="Write the fixture suites as JSON files."
    )
    parser.add_argument(
        "directory",
        nargs="?",
        default=str(DEFAULT_FIXTURE_DIRECTORY),
        help="directory that receives the fixture files",
    )
    args = parser.parse_args(argv)

    write_fixture_suite(build_reference_one_body_suite(), args.directory)
    write_fixture_suite(build_reference_two_body_suite(), args.directory)
    write_matrix_element_fixture_suite(build_matrix_element_suite(), args.directory)
    return 0
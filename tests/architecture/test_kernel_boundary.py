"""
Kernel boundary tests.

1. inventory_kernel/** may NOT import inventory_services.  The kernel never
   depends upward.
2. inventory_kernel/domain/** imports no ORM or database packages.
3. Selectors are read-only: they never import services.
4. The ledger invariant declaration is complete and non-empty.

These tests read source code via AST; they import nothing they inspect.
"""

import ast
from pathlib import Path

from inventory_kernel.invariants import (
    ALL_LEDGER_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    LedgerInvariant,
)

ROOT = Path(__file__).resolve().parents[2]


def _python_files(relative: str) -> list[Path]:
    return sorted((ROOT / relative).rglob("*.py"))


def _extract_imports(path: Path) -> list[tuple[int, str]]:
    """(line_number, module) for every import in a file."""
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _violations(relative: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in _python_files(relative):
        for lineno, module in _extract_imports(path):
            if any(module == p or module.startswith(f"{p}.") for p in forbidden):
                found.append(f"  {path.relative_to(ROOT)}:{lineno} imports '{module}'")
    return found


class TestKernelNoUpwardDependencies:
    def test_kernel_does_not_import_services_package(self):
        violations = _violations("inventory_kernel", FORBIDDEN_KERNEL_IMPORTS)
        assert not violations, (
            "Kernel boundary violation, inventory_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )

    def test_kernel_sources_found(self):
        assert _python_files("inventory_kernel")


class TestLayering:
    def test_domain_has_no_orm_imports(self):
        violations = _violations(
            "inventory_kernel/domain",
            ("sqlalchemy", "psycopg2", "sqlite3", "inventory_kernel.db", "inventory_kernel.models"),
        )
        assert not violations, "\n".join(violations)

    def test_selectors_do_not_import_services(self):
        violations = _violations("inventory_kernel/selectors", ("inventory_kernel.services",))
        assert not violations, "\n".join(violations)

    def test_models_do_not_import_services_or_selectors(self):
        violations = _violations(
            "inventory_kernel/models",
            ("inventory_kernel.services", "inventory_kernel.selectors"),
        )
        assert not violations, "\n".join(violations)


class TestInvariantDeclaration:
    def test_all_invariants_declared(self):
        assert ALL_LEDGER_INVARIANTS == frozenset(LedgerInvariant)
        assert LedgerInvariant.NO_OVERSELL in ALL_LEDGER_INVARIANTS
        assert LedgerInvariant.ACCOUNTING_IDENTITY in ALL_LEDGER_INVARIANTS

    def test_services_package_is_forbidden(self):
        assert "inventory_services" in FORBIDDEN_KERNEL_IMPORTS

"""
Layering rules for the stock ledger packages.

1. stock_kernel/** may not import stock_services, stock_modules or
   stock_config.  The only exception is the lazy ORM registry import in
   stock_kernel/db/engine.py used by create_tables/drop_tables.
2. stock_engines/** is pure: no ORM, no database, no upward imports.
3. stock_kernel/domain/** does not touch the ORM.

These tests read source code via AST.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(path: Path) -> list[tuple[int, str]]:
    tree = ast.parse(path.read_text(), filename=str(path))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            results.extend((node.lineno, alias.name) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...], allowed: frozenset[str] | set[str] = frozenset()):
    found = []
    for path in _python_files(package):
        relative = path.relative_to(ROOT).as_posix()
        for lineno, module in _extract_imports(path):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    if f"{relative}:{module}" in allowed:
                        continue
                    found.append(f"  {relative}:{lineno} imports '{module}'")
    return found


class TestKernelNoUpwardDependencies:
    FORBIDDEN = ("stock_services", "stock_modules", "stock_config")
    ALLOWED = {"stock_kernel/db/engine.py:stock_modules._orm_registry"}

    def test_kernel_does_not_import_upward(self):
        violations = _violations("stock_kernel", self.FORBIDDEN, self.ALLOWED)
        assert not violations, (
            "stock_kernel/** must not import upward packages:\n" + "\n".join(violations)
        )


class TestEnginePurity:
    FORBIDDEN = (
        "sqlalchemy",
        "psycopg2",
        "sqlite3",
        "stock_kernel.db",
        "stock_kernel.models",
        "stock_services",
        "stock_modules",
    )

    def test_engines_are_pure(self):
        violations = _violations("stock_engines", self.FORBIDDEN)
        assert not violations, (
            "stock_engines/** must stay free of ORM and service imports:\n"
            + "\n".join(violations)
        )


class TestKernelDomainPurity:
    FORBIDDEN = ("sqlalchemy", "psycopg2", "sqlite3", "stock_kernel.db", "stock_kernel.models")

    def test_domain_no_orm_imports(self):
        violations = _violations("stock_kernel/domain", self.FORBIDDEN)
        assert not violations, (
            "stock_kernel/domain/** must not import ORM or DB packages:\n"
            + "\n".join(violations)
        )

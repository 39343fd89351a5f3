"""Structural tests for route code.

Verifies that routes follow the service/route separation rule:
- Routes may not contain domain logic or raw DB access
- Routes may only import from allowed modules
"""

import ast
from pathlib import Path

import pytest


def get_routes_dir() -> Path:
    """Get the path to the routes directory."""
    # Navigate from tests/ to folio/api/routes/
    tests_dir = Path(__file__).parent
    return tests_dir.parent / "folio" / "api" / "routes"


def get_all_route_files() -> list[Path]:
    """Get all Python files in the routes directory."""
    routes_dir = get_routes_dir()
    if not routes_dir.exists():
        return []
    return [f for f in routes_dir.iterdir() if f.suffix == ".py" and f.name != "__init__.py"]


def _parse(route_file: Path) -> ast.Module:
    return ast.parse(route_file.read_text())


class TestForbiddenImports:
    """Tests that route files don't import forbidden modules."""

    # Allowed imports for routes (exhaustive list)
    ALLOWED_MODULES = [
        "fastapi",
        "typing",
        "uuid",
        "sqlalchemy.orm",  # Only for Session type annotation
        "folio.api.deps",
        "folio.auth.middleware",
        "folio.responses",
        "folio.errors",
        "folio.schemas",
        "folio.services",
    ]

    @pytest.fixture
    def route_files(self) -> list[Path]:
        """Get all route files to test."""
        files = get_all_route_files()
        assert len(files) > 0, "No route files found to test"
        return files

    def test_only_allowed_modules_imported(self, route_files: list[Path]):
        """Every import in a route file comes from the allowed list."""
        for route_file in route_files:
            for node in ast.walk(_parse(route_file)):
                if isinstance(node, ast.ImportFrom) and node.module:
                    module = node.module
                elif isinstance(node, ast.Import):
                    module = node.names[0].name
                else:
                    continue

                allowed = any(
                    module == prefix or module.startswith(prefix + ".")
                    for prefix in self.ALLOWED_MODULES
                )
                assert allowed, f"{route_file.name}: Forbidden import from '{module}'"

    def test_only_session_from_sqlalchemy(self, route_files: list[Path]):
        """Route files may only import Session from sqlalchemy.orm."""
        for route_file in route_files:
            for node in ast.walk(_parse(route_file)):
                if isinstance(node, ast.ImportFrom) and node.module == "sqlalchemy.orm":
                    names = [alias.name for alias in node.names]
                    assert names == ["Session"], (
                        f"{route_file.name}: Only 'from sqlalchemy.orm import Session' is allowed"
                    )

    def test_no_raw_db_operations_in_routes(self, route_files: list[Path]):
        """Route files must not call db.execute, db.scalar, etc."""
        for route_file in route_files:
            for node in ast.walk(_parse(route_file)):
                if not (isinstance(node, ast.Call) and isinstance(node.func, ast.Attribute)):
                    continue
                if node.func.attr not in ("execute", "scalar", "query", "add", "commit"):
                    continue
                if isinstance(node.func.value, ast.Name) and node.func.value.id in (
                    "db",
                    "session",
                ):
                    pytest.fail(
                        f"{route_file.name}: Forbidden call "
                        f"'{node.func.value.id}.{node.func.attr}()'. "
                        "Route files must not perform raw DB operations."
                    )

    def test_toc_routes_use_service_functions(self):
        """The TOC route module delegates to folio.services."""
        source = (get_routes_dir() / "toc.py").read_text()
        assert "folio.services" in source


class TestRouteFileStructure:
    """Tests for overall route file structure."""

    def test_all_routes_have_router(self):
        """All route files must define a 'router' object."""
        for route_file in get_all_route_files():
            has_router = any(
                isinstance(node, ast.Assign)
                and any(isinstance(t, ast.Name) and t.id == "router" for t in node.targets)
                for node in ast.walk(_parse(route_file))
            )
            assert has_router, f"{route_file.name} must define a 'router' object"

    def test_route_handlers_return_dict_or_response(self):
        """Route handlers should return dict (for success_response) or Response."""
        for route_file in get_all_route_files():
            for node in ast.walk(_parse(route_file)):
                if not isinstance(node, ast.FunctionDef):
                    continue
                is_route_handler = any(
                    isinstance(d, ast.Call)
                    and isinstance(d.func, ast.Attribute)
                    and isinstance(d.func.value, ast.Name)
                    and d.func.value.id == "router"
                    for d in node.decorator_list
                )
                if is_route_handler and isinstance(node.returns, ast.Name):
                    assert node.returns.id in ("dict", "Response"), (
                        f"{route_file.name}:{node.name} should return dict or Response"
                    )

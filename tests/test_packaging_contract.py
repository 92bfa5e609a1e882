#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for package layering and version management contracts.
"""

from pathlib import Path

import pytest

from easyrmi import __version__ as public_version
from easyrmi._version import __version__ as internal_version


PROJECT_ROOT = Path(__file__).resolve().parents[1]
PYPROJECT_PATH = PROJECT_ROOT / "pyproject.toml"


def _load_pyproject() -> dict:
    try:
        import tomllib  # Python 3.11+
    except ModuleNotFoundError:  # pragma: no cover
        import tomli as tomllib

    return tomllib.loads(PYPROJECT_PATH.read_text(encoding="utf-8"))


def test_version_is_single_sourced_via_easyrmi_version_module():
    pyproject = _load_pyproject()
    project = pyproject["project"]

    assert project.get("dynamic") == ["version"]
    assert (
        pyproject["tool"]["setuptools"]["dynamic"]["version"]["attr"]
        == "easyrmi._version.__version__"
    )
    assert public_version == internal_version


def test_core_dependencies_are_runtime_only():
    pyproject = _load_pyproject()
    deps = pyproject["project"]["dependencies"]
    joined = "\n".join(deps).lower()

    assert "rich" in joined
    assert "pytest" not in joined
    assert "grpcio" not in joined


def test_test_extra_provides_pytest():
    pyproject = _load_pyproject()
    optional = pyproject["project"]["optional-dependencies"]

    assert "test" in optional
    assert any("pytest" in dep.lower() for dep in optional["test"])


def test_toml_parser_fallback_is_declared_for_older_pythons():
    pyproject = _load_pyproject()
    declared = [
        pyproject["project"]["optional-dependencies"]["test"],
        pyproject["dependency-groups"]["test"],
    ]

    for deps in declared:
        assert any(
            dep.startswith("tomli") and "python_version < '3.11'" in dep for dep in deps
        )


def test_uv_default_groups_cover_dev_and_test():
    pyproject = _load_pyproject()
    groups = pyproject["dependency-groups"]
    default_groups = pyproject["tool"]["uv"]["default-groups"]

    assert "dev" in groups
    assert "test" in groups
    assert "dev" in default_groups
    assert "test" in default_groups


def test_public_api_resolves_lazily():
    import easyrmi

    assert easyrmi.Skeleton.__name__ == "Skeleton"
    assert easyrmi.make_stub.__name__ == "make_stub"
    assert "TransportError" in easyrmi.__all__

    with pytest.raises(AttributeError):
        getattr(easyrmi, "NotAnExport")

"""Check the package source compiles without warnings."""

from pathlib import Path
import warnings

import pytest

import portfolio_live

SOURCES = sorted(Path(portfolio_live.__file__).parent.rglob("*.py"))


@pytest.mark.parametrize("path", SOURCES, ids=lambda p: p.name)
def test_compiles_without_warnings(path):
    """Invalid escape sequences in docstrings would warn here."""
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        compile(path.read_text(), str(path), "exec")

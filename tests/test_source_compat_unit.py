import ast
import pathlib
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parent.parent
SOURCES = sorted((ROOT / "stepmatrix").glob("*.py")) + [ROOT / "backend" / "app" / "main.py"]


def _fstring_expressions(path: pathlib.Path) -> list:
    source = path.read_text(encoding="utf-8")
    return [
        ast.get_source_segment(source, node.value) or ""
        for node in ast.walk(ast.parse(source))
        if isinstance(node, ast.FormattedValue)
    ]


@pytest.mark.skipif(sys.version_info < (3, 12), reason="older parsers already refuse such files")
@pytest.mark.parametrize("path", SOURCES, ids=lambda p: p.name)
def test_fstring_expressions_have_no_backslash(path: pathlib.Path) -> None:
    # a backslash inside {...} only parses from Python 3.12 on
    assert [e for e in _fstring_expressions(path) if "\\" in e] == []

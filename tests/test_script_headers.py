# /// script
# requires-python = ">=3.12"
# dependencies = ["pytest>=7.0"]
# ///
"""Every module is runnable as a single-file uv script.

Validates:
  1. Each .py file starts with a PEP 723 ``# /// script`` block
  2. The block declares requires-python and dependencies
  3. Third-party packages a file imports are listed in its own block
"""

import ast
import re
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent

PEP723_OPEN = "# /// script"
THIRD_PARTY = {"flask", "pydantic", "pytest"}


def _all_py_files():
    files = []
    for f in sorted(PROJECT_ROOT.rglob("*.py")):
        rel = f.relative_to(PROJECT_ROOT)
        if any(part.startswith(".") or part == "__pycache__" for part in rel.parts):
            continue
        files.append(f)
    return files


def _pep723_block(text: str) -> str | None:
    m = re.search(r"^# /// script\s*\n((?:#[^\n]*\n)*?)# ///", text, re.MULTILINE)
    return m.group(1) if m else None


def _declared(block: str) -> set[str]:
    m = re.search(r"dependencies\s*=\s*\[([^\]]*)\]", block.replace("#", ""))
    if not m:
        return set()
    names = set()
    for dep in m.group(1).split(","):
        dep = dep.strip().strip('"').strip("'")
        if dep:
            names.add(re.split(r"[<>=!~\[ ]", dep, maxsplit=1)[0].lower())
    return names


def _imported_top_level(text: str) -> set[str]:
    names = set()
    for node in ast.walk(ast.parse(text)):
        if isinstance(node, ast.Import):
            names.update(alias.name.split(".")[0] for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module and node.level == 0:
            names.add(node.module.split(".")[0])
    return names


ALL_PY_FILES = _all_py_files()
ALL_PY_FILE_IDS = [str(f.relative_to(PROJECT_ROOT)) for f in ALL_PY_FILES]


@pytest.mark.parametrize("py_file", ALL_PY_FILES, ids=ALL_PY_FILE_IDS)
def test_block_is_first_line(py_file):
    first_line = py_file.read_text(encoding="utf-8").split("\n")[0]
    assert first_line.strip() == PEP723_OPEN


@pytest.mark.parametrize("py_file", ALL_PY_FILES, ids=ALL_PY_FILE_IDS)
def test_block_declares_python_and_dependencies(py_file):
    block = _pep723_block(py_file.read_text(encoding="utf-8"))
    assert block is not None
    assert "requires-python" in block
    assert "dependencies" in block


@pytest.mark.parametrize("py_file", ALL_PY_FILES, ids=ALL_PY_FILE_IDS)
def test_third_party_imports_declared(py_file):
    text = py_file.read_text(encoding="utf-8")
    missing = (_imported_top_level(text) & THIRD_PARTY) - _declared(_pep723_block(text) or "")
    assert not missing, f"{py_file.name} imports undeclared {sorted(missing)}"

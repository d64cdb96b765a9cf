# deployer/guardrails.py
from typing import List, NamedTuple, Optional, Sequence

import markdown
from bs4 import BeautifulSoup

from .models import GeneratedFile

README = "README.md"
INDEX = "index.html"
TRACKED_FILES = (README, INDEX)

class ParseResult(NamedTuple):
    ok: bool
    error: Optional[str] = None

def parse_markdown(text: str) -> ParseResult:
    try:
        markdown.markdown(text)
    except Exception as e:
        return ParseResult(False, f"{type(e).__name__}: {e}")
    return ParseResult(True)

def parse_html(text: str) -> ParseResult:
    try:
        BeautifulSoup(text, "html.parser")
    except Exception as e:
        return ParseResult(False, f"{type(e).__name__}: {e}")
    return ParseResult(True)

def _find(files: Sequence[GeneratedFile], name: str) -> Optional[GeneratedFile]:
    for f in files:
        if f.filename == name:
            return f
    return None

def _check_file(files, name, kind, parse) -> List[str]:
    f = _find(files, name)
    if f is None:
        return [f'missing required file "{name}"']
    if f.type.lower() != kind:
        return [f'"{name}" must have type "{kind}" (got "{f.type}")']
    if not f.content.strip():
        return [f'"{name}" content is empty']
    parsed = parse(f.content)
    if not parsed.ok:
        return [f'{kind} parse error in "{name}": {parsed.error}']
    return []

def validate_bundle(files: Sequence[GeneratedFile]) -> List[str]:
    """
    Check a generated bundle and return every violation found (empty list means valid).
    """
    violations: List[str] = []
    violations += _check_file(files, README, "markdown", parse_markdown)
    violations += _check_file(files, INDEX, "html", parse_html)
    if len(files) != 2:
        violations.append(
            f"expected exactly 2 files ({README} and {INDEX}), got {len(files)}"
        )
    return violations

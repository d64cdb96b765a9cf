import logging
import re
from typing import List, Optional, Sequence

import yaml
from openai import OpenAI
from pydantic import ValidationError

from .errors import GenerationError
from .guardrails import INDEX, README
from .models import GeneratedFile, GenerationAttachment, RepoFile

log = logging.getLogger(__name__)

# ---------- prompts ----------
GENERATE_SYSTEM = f"""You are a developer who outputs exactly TWO files as a YAML array of objects:
- type: "markdown" | "html"
- filename: string
- content: string
Files required (exactly these two):
1) {README} (type: markdown)
2) {INDEX} (type: html)

Rules:
- Derive everything from the brief, the checks and the attachments list. Do not assume.
- If required info is missing, render a visible in-page error and console.error an explanation; never fabricate data, URLs or formats.
- Only use attachments from the list, by their exact url. Never invent filenames or paths.
- Load libraries from public CDNs (jsDelivr, unpkg, cdnjs) without integrity hashes.
- Check that required DOM elements exist before writing into them.
- Fall back to sensible defaults for missing query params and user inputs.

Output: a YAML array with exactly two objects, keys type/filename/content only. No prose, no comments, no backticks."""

MODIFY_SYSTEM = f"""You modify an existing two-file frontend bundle. Output exactly TWO files as a YAML array of objects:
- type: "markdown" | "html"
- filename: string (must remain {README} or {INDEX})
- content: string (entire new contents)

Rules:
- Edit the given files to satisfy the new brief and checks. Do not add or remove files.
- Keep filenames identical ({README}, {INDEX}).
- Do not assume; if info is missing, render a visible in-page error and console.error.
- Use only the attachments provided; never invent paths.
- Full file contents only; no diffs, no comments, no backticks."""

def _generate_prompt(brief: str, checks: str, attachments_yaml: str) -> str:
    return f"""TASK:
{brief}

EVALUATION CHECKS (design for these; do not assume anything not stated):
{checks or "(none)"}

ATTACHMENTS (authoritative list; use only if needed):
---
{attachments_yaml}---

OUTPUT FORMAT (strict):
- YAML array with exactly two items:
  - {README} (type: markdown): summary, how to open locally, MIT license with a link to LICENSE (do not include the LICENSE file).
  - {INDEX} (type: html): the full working page.
"""

def _modify_prompt(brief: str, checks: str, attachments_yaml: str, current_yaml: str) -> str:
    return f"""CURRENT FILES (authoritative):
---
{current_yaml}---

NEW BRIEF:
{brief}

CHECKS (design for these; do not invent anything not stated):
{checks or "(none)"}

ATTACHMENTS:
---
{attachments_yaml}---

Return YAML with exactly two objects ({README} markdown, {INDEX} html) holding the updated contents.
"""

# ---------- reply parsing ----------
_FENCE_RE = re.compile(r"^```[ \t]*([A-Za-z0-9_-]*)[ \t]*\n?([\s\S]*?)\n?```\s*$")

def extract_yaml(text: str) -> str:
    """Strip a BOM and an optional ``` / ```yaml fence around the reply."""
    s = text.lstrip("\ufeff").strip()
    m = _FENCE_RE.match(s)
    if m:
        s = m.group(2)
    return s.strip()

def parse_bundle(text: str) -> List[GeneratedFile]:
    try:
        data = yaml.safe_load(extract_yaml(text))
    except yaml.YAMLError as e:
        log.error("yaml parse error: %s; content:\n%s", e, text)
        raise GenerationError(f"failed_to_parse_yaml: {e}") from e
    if not isinstance(data, list):
        raise GenerationError(f"expected a YAML list of files, got {type(data).__name__}")
    try:
        return [GeneratedFile.model_validate(item) for item in data]
    except ValidationError as e:
        raise GenerationError(f"malformed file entry: {e}") from e

def _dump(items) -> str:
    return yaml.safe_dump([i.model_dump() for i in items], sort_keys=False, allow_unicode=True)

# ---------- client ----------
class GenerationClient:
    def __init__(
        self,
        api_key: str,
        base_url: str = "",
        model: str = "gpt-5-mini",
        timeout: float = 320.0,
        client: Optional[OpenAI] = None,
    ):
        if client is None:
            if not api_key:
                raise GenerationError("OPENAI_API_KEY not set")
            client = OpenAI(api_key=api_key, base_url=base_url or None)
        self.client = client
        self.model = model
        self.timeout = timeout

    def check_connectivity(self) -> None:
        try:
            self.client.models.list()
        except Exception as e:
            raise GenerationError(f"openai_key_invalid: {e}") from e

    def _complete(self, system: str, user: str) -> str:
        try:
            resp = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                timeout=self.timeout,
            )
        except Exception as e:
            raise GenerationError(f"openai_error: {e}") from e
        return resp.choices[0].message.content or ""

    def generate(
        self, brief: str, checks: str, attachments: Sequence[GenerationAttachment]
    ) -> List[GeneratedFile]:
        reply = self._complete(GENERATE_SYSTEM, _generate_prompt(brief, checks, _dump(attachments)))
        files = parse_bundle(reply)
        _require_names(files, {README, INDEX})
        return files

    def modify(
        self,
        brief: str,
        checks: str,
        attachments: Sequence[GenerationAttachment],
        current: Sequence[RepoFile],
    ) -> List[GeneratedFile]:
        existing = [
            GeneratedFile(type="markdown" if f.filename == README else "html", filename=f.filename, content=f.content)
            for f in current
        ]
        reply = self._complete(
            MODIFY_SYSTEM, _modify_prompt(brief, checks, _dump(attachments), _dump(existing))
        )
        files = parse_bundle(reply)
        _require_names(files, {f.filename for f in current})
        return files

def _require_names(files: Sequence[GeneratedFile], expected: set) -> None:
    names = [f.filename for f in files]
    if len(files) != 2 or set(names) != expected:
        raise GenerationError(f"expected files {sorted(expected)}, got {names}")

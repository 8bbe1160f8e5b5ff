"""TyranoScript (.ks) dialogue extraction and reinsertion.

Text lines are plain prose wrapped by ``[tag]`` runs, e.g.
``[face id=1]Hello there.[wait]``.  The prose between the leading and
trailing tag runs is the text unit; the runs themselves are stored
verbatim in the mapping and reattached on save.
"""

import logging
import re

from . import LETTER_RE
from .project_model import BracketTagMapping
from .text_processor import inline_breaks, join_lines, split_lines, split_tag_runs

log = logging.getLogger(__name__)

_TAG_ONLY_RE = re.compile(r'^\[[^\]]+\]$')
_CONDITION_RE = re.compile(r'^if\s*\(.+\)')
_CALL_RE = re.compile(r'^\w+\(.+\)$')
_ASSIGNMENT_RE = re.compile(r'^[A-Za-z_]\w*\s*=')
_BLOCK_RE = re.compile(r'^\{.*\}$')
_CHARA_LINE_RE = re.compile(r'^#[A-Za-z0-9_]+')
_FUNCTION_RE = re.compile(r'function\s*\(')
_CODE_CHARS_RE = re.compile(r'[{}();=]')
_METHOD_CALL_RE = re.compile(r'^\w+\.\w+\(')
_ANY_TAG_RE = re.compile(r'\[[^\]]*\]')


def is_text_line(line: str) -> bool:
    """Reject labels, comments, directives, tag-only lines and code."""
    t = line.strip()
    if not t:
        return False
    if t[0] in "*;@":
        return False
    if _TAG_ONLY_RE.match(t):
        return False
    if _CONDITION_RE.match(t) or _CALL_RE.match(t) or _ASSIGNMENT_RE.match(t):
        return False
    if _BLOCK_RE.match(t):
        return False
    if t.startswith("[eval") or t.startswith("eval"):
        return False
    if _CHARA_LINE_RE.match(t):
        return False
    # Code characters only count outside tags: [face id=1] is fine.
    prose = _ANY_TAG_RE.sub("", t)
    if _FUNCTION_RE.search(prose) or _CODE_CHARS_RE.search(prose):
        return False
    if _METHOD_CALL_RE.match(prose.strip()):
        return False
    return True


class TyranoScriptParser:
    """Extracts and reinserts the prose of TyranoScript text lines."""

    def extract(self, source: str) -> tuple[list, list]:
        bodies, _ = split_lines(source)
        texts, mapping = [], []
        for i, line in enumerate(bodies):
            if not is_text_line(line):
                continue
            prefix, center, suffix = split_tag_runs(line)
            if not LETTER_RE.search(center):
                continue
            texts.append(center)
            mapping.append(BracketTagMapping(i, prefix, suffix))
        return texts, mapping

    def reinsert(self, source: str, mapping: list, texts: list) -> str:
        """Rewrite each mapped line as ``prefix + text + suffix``.

        Newlines in an edited text become ``[r]`` so the line stays whole.
        """
        bodies, endings = split_lines(source)
        for i, m in enumerate(mapping):
            text = texts[i] if i < len(texts) and texts[i] is not None else ""
            if not 0 <= m.line_index < len(bodies):
                log.debug("Mapping %d: line %d out of range — skipped", i, m.line_index)
                continue
            bodies[m.line_index] = m.prefix + inline_breaks(text) + m.suffix
        return join_lines(bodies, endings)

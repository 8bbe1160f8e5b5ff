"""Text recovery from script-call parameters (event codes 355/655/356).

Script calls hold a small JavaScript-ish expression rather than plain
dialogue, e.g. ``ShowText("Hello" + " " + "World")`` or
``LogWindow {"text": "The door is locked."}``.  :func:`find_script_strings`
scans such a string with several detectors and returns one
:class:`ScriptString` per distinct translatable value, each carrying the
character spans it occupies so that reinsertion can replace it by offset.
"""

import json
import logging
import re
from dataclasses import dataclass, field

from .classifier import is_garbage
from .text_processor import escape_literal

log = logging.getLogger(__name__)

KIND_QUOTED = "quoted-string"
KIND_TEMPLATE = "template-literal"
KIND_KEY_VALUE = "key-value"
KIND_CONCAT = "concatenation"
KIND_PLUGIN_ARG = "plugin-argument"

_QUOTES = ("'", '"', "`")

# PluginName {"key": "value", ...}
_PLUGIN_CALL_RE = re.compile(r'^\s*([A-Za-z_][\w.]*)\s+(\{.*\})\s*$', re.DOTALL)
# key: <literal>, the key immediately before a literal
_KEY_BEFORE_RE = re.compile(r'([A-Za-z_]\w*)\s*:\s*$')
_KEY_VALUE_HEAD_RE = re.compile(r'^[A-Za-z_]\w*\s*:\s*')
_CONCAT_GAP_RE = re.compile(r'^\s*\+\s*$')
_ASSET_FILE_RE = re.compile(
    r'^[\w\-./\\ ]+\.(png|jpe?g|gif|webp|bmp|ogg|m4a|mp3|wav|mid|mp4|webm|'
    r'json|js|rpgmvp|rpgmvo|ttf|otf|woff2?)$',
    re.IGNORECASE,
)


@dataclass
class ScriptString:
    """One translatable value found inside a script parameter."""
    text: str              # Value offered for translation
    original_match: str    # Exact source substring replaced on reinsertion
    kind: str              # One of the KIND_* constants
    quote: str = '"'       # Quote character of the (first) literal
    spans: list = field(default_factory=list)  # [[start, end], ...] in the parameter


@dataclass
class _Literal:
    start: int
    end: int
    quote: str

    def inner(self, source: str) -> str:
        return source[self.start + 1:self.end - 1]


def _tokenize_literals(source: str) -> list:
    """Find quoted literals left to right, honouring backslash escapes.

    An unterminated literal ends the scan.
    """
    out = []
    i = 0
    n = len(source)
    while i < n:
        c = source[i]
        if c not in _QUOTES:
            i += 1
            continue
        j = i + 1
        while j < n:
            if source[j] == "\\":
                j += 2
                continue
            if source[j] == c:
                break
            j += 1
        if j >= n:
            break
        out.append(_Literal(i, j + 1, c))
        i = j + 1
    return out


def _overlaps(start: int, end: int, claimed: list) -> bool:
    return any(start < c_end and c_start < end for c_start, c_end in claimed)


def _is_object_key(source: str, lit: _Literal) -> bool:
    """True for ``{"key": ...`` / ``, 'key': ...`` style literals."""
    before = source[:lit.start].rstrip()
    after = source[lit.end:].lstrip()
    return after.startswith(":") and (not before or before[-1] in "{,")


def _concat_chains(source: str, literals: list) -> list:
    """Group runs of non-template literals joined by ``+``."""
    chains = []
    run = []
    for lit in literals:
        if lit.quote == "`":
            if len(run) > 1:
                chains.append(run)
            run = []
            continue
        if run and _CONCAT_GAP_RE.match(source[run[-1].end:lit.start]):
            run.append(lit)
        else:
            if len(run) > 1:
                chains.append(run)
            run = [lit]
    if len(run) > 1:
        chains.append(run)
    return chains


def _plugin_candidates(source: str, literals: list) -> tuple:
    """Candidates from a ``Name {json}`` plugin call, plus the claimed span."""
    m = _PLUGIN_CALL_RE.match(source)
    if not m:
        return [], None
    try:
        args = json.loads(m.group(2))
    except (json.JSONDecodeError, ValueError):
        return [], None
    if not isinstance(args, dict):
        return [], None
    values = {v for v in args.values() if isinstance(v, str)}
    block = m.span(2)
    found = []
    for lit in literals:
        if lit.quote != '"' or lit.start < block[0] or lit.end > block[1]:
            continue
        raw = source[lit.start:lit.end]
        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            continue
        # Keys decode too; only keep literals followed by a value position.
        if value in values and not source[lit.end:block[1]].lstrip().startswith(":"):
            found.append(ScriptString(value, raw, KIND_PLUGIN_ARG, '"',
                                      [[lit.start, lit.end]]))
    return found, block


def find_script_strings(source: str) -> list:
    """Extract translatable values from a script-call parameter string.

    Detectors run in a fixed precedence; a literal already claimed by an
    earlier detector is not reported again.  Values are de-duplicated by
    text: a repeat with the same source form adds a span to the first
    record, a repeat with a different form is dropped.  Results are in
    source order.
    """
    if not isinstance(source, str) or not source:
        return []

    literals = _tokenize_literals(source)
    candidates = []
    claimed = []

    def _claim(candidate):
        start, end = candidate.spans[0]
        if _overlaps(start, end, claimed):
            return
        claimed.append((start, end))
        candidates.append(candidate)

    # 1. Template literals
    for lit in literals:
        if lit.quote == "`":
            _claim(ScriptString(lit.inner(source), source[lit.start:lit.end],
                                KIND_TEMPLATE, "`", [[lit.start, lit.end]]))

    # 2. Plugin-call arguments
    plugin_found, plugin_block = _plugin_candidates(source, literals)
    for cand in plugin_found:
        _claim(cand)
    if plugin_block:
        # Nothing else inside the data block is text.
        claimed.append(plugin_block)

    # 3. Concatenation chains
    for chain in _concat_chains(source, literals):
        start, end = chain[0].start, chain[-1].end
        text = "".join(lit.inner(source) for lit in chain)
        _claim(ScriptString(text, source[start:end], KIND_CONCAT,
                            chain[0].quote, [[start, end]]))

    # 4. key: "value" attributes, 5. plain quoted strings
    for lit in literals:
        if lit.quote == "`":
            continue
        inner = lit.inner(source)
        if _ASSET_FILE_RE.match(inner.strip()):
            continue
        km = _KEY_BEFORE_RE.search(source, 0, lit.start)
        if km and km.end() == lit.start:
            _claim(ScriptString(inner, source[km.start():lit.end],
                                KIND_KEY_VALUE, lit.quote, [[km.start(), lit.end]]))
            continue
        if _is_object_key(source, lit):
            continue
        _claim(ScriptString(inner, source[lit.start:lit.end], KIND_QUOTED,
                            lit.quote, [[lit.start, lit.end]]))

    candidates.sort(key=lambda c: c.spans[0][0])

    accepted = []
    by_text = {}
    for cand in candidates:
        if is_garbage(cand.text):
            continue
        first = by_text.get(cand.text)
        if first is not None:
            if first.original_match == cand.original_match:
                first.spans.extend(cand.spans)
            else:
                log.debug("Dropping repeated script value %r with a different form",
                          cand.text[:40])
            continue
        by_text[cand.text] = cand
        accepted.append(cand)
    return accepted


def render_script_literal(kind: str, original_match: str, quote: str,
                          text: str) -> str:
    """Build the replacement for *original_match* carrying *text*."""
    if kind == KIND_PLUGIN_ARG:
        return json.dumps(text, ensure_ascii=False)
    if kind == KIND_TEMPLATE:
        return "`" + escape_literal(text, "`") + "`"
    literal = quote + escape_literal(text, quote) + quote
    if kind == KIND_KEY_VALUE:
        head = _KEY_VALUE_HEAD_RE.match(original_match)
        return (head.group(0) if head else "") + literal
    return literal


def apply_script_edits(source: str, edits: list) -> str:
    """Apply ``(start, end, original, replacement)`` edits to *source*.

    Edits are applied right to left so earlier offsets stay valid.  An
    edit whose span no longer holds *original* is skipped.
    """
    for start, end, original, replacement in sorted(
            edits, key=lambda e: e[0], reverse=True):
        if source[start:end] != original:
            log.debug("Script literal %r no longer at %d:%d — skipped",
                      original[:40], start, end)
            continue
        source = source[:start] + replacement + source[end:]
    return source

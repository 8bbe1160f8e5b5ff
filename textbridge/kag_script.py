"""KiriKiri KAG script (.ks) text extraction and reinsertion.

KAG sources mix ``[tag]`` syntax, ``@directive`` lines and Japanese
quotation spans (「…」).  Each line is tried against an ordered list of
matchers; the first one that recognises the line's shape decides how its
text is captured, and its ``extract_kind`` is stored in the mapping so
reinsertion can rebuild exactly that shape.
"""

import logging
import re

from . import JAPANESE_RE
from .project_model import MixedTagMapping
from .text_processor import (
    escape_literal, inline_breaks, join_lines, replace_nth, split_lines, split_tag_runs,
)

log = logging.getLogger(__name__)

KIND_EVAL = "eval-variable"
KIND_ATTRIBUTE = "tag-attribute"
KIND_EMB = "emb-text"
KIND_CNAME = "cname-dialogue"
KIND_QUOTATION = "quotation"
KIND_BARE = "bare-line"

_EVAL_RE = re.compile(
    r'@eval\s+exp=(?P<outer>["\']?)'
    r'(?P<path>(?:sf|f|tf)\.(?:\w*name\w*|\w*label\w*|hnam\d?))'
    r'=(?P<q>["\'])(?P<text>.*?)(?P=q)'
)
_ATTRIBUTE_RE = re.compile(r'\b(?P<attr>text|name)=(?P<q>["\'])(?P<text>.*?)(?P=q)')
_EMB_RE = re.compile(r'\[emb\s+exp=[^\]]*\]\s*[^\[\s]')
_CNAME_RE = re.compile(r'^\s*\[cname\s+chara=[^\]]*\]')
_QUOTATION_RE = re.compile(r'「(.*?)」')
_NEWLINE_RE = re.compile(r'\r\n|\n')
_OTHER_QUOTE = {'"': "'", "'": '"'}

# Inline control tokens: page/line breaks, waits, clears.
_CONTROL_TAG_RE = re.compile(
    r'\[(?:np|r|l|p|lr|plc|pcm|cm|er|ct|w|wait[^\]]*)\]', re.IGNORECASE)
_SYNTAX_ONLY_RE = re.compile(r'^[\\A-Za-z0-9_\[\]<>/=]+$')
_LATIN_WORD_RE = re.compile(r'[A-Za-z]{3}')

_GARBAGE_RES = (
    re.compile(r'^;+'),
    re.compile(r'^\*.+'),
    re.compile(r'^\[.+\]$'),
    re.compile(r'^@.+'),
    re.compile(r'^【.*?】$'),
    re.compile(r'^「§」$'),
    re.compile(r'^§$'),
    re.compile(r'^[\[\]{}()]+$'),
    re.compile(r'^[=><+\-*/]+$'),
    re.compile(r'^#'),
    re.compile(r'^[0-9]+$'),
    re.compile(r'^(return|break|continue|if|else|while|for|function|var|const|let)$',
               re.IGNORECASE),
)


def is_kag_garbage(text) -> bool:
    """True when *text* is KAG syntax rather than displayable text."""
    if not text:
        return True
    t = text.strip()
    return not t or any(r.match(t) for r in _GARBAGE_RES)


def _usable_quote(text: str, quote: str):
    """*quote* when *text* does not contain it, else the other quote kind,
    else None."""
    if quote not in text:
        return quote
    other = _OTHER_QUOTE.get(quote)
    if other and other not in text:
        return other
    return None


def _spoken(text: str) -> str:
    """*text* without inline control tokens, for classification only."""
    return _CONTROL_TAG_RE.sub("", text).strip()


# ── Matchers ─────────────────────────────────────────────────────────
# Each takes (line_index, raw_line) and returns None when the line does
# not have its shape, else a list of (text, MixedTagMapping), possibly
# empty when the shape matched but held no text.

def _match_eval(i: int, raw: str):
    m = _EVAL_RE.search(raw)
    if not m:
        return None
    if is_kag_garbage(m.group("text")):
        return []
    return [(m.group("text"), MixedTagMapping(
        i, KIND_EVAL, quote=m.group("q"), variable_path=m.group("path")))]


def _match_attribute(i: int, raw: str):
    # On tag-only and @directive lines name= is a character id, not a label.
    allow_name = not is_kag_garbage(raw)
    m = next((m for m in _ATTRIBUTE_RE.finditer(raw)
              if allow_name or m.group("attr") == "text"), None)
    if m is None:
        return None
    if is_kag_garbage(m.group("text")):
        return []
    return [(m.group("text"), MixedTagMapping(
        i, KIND_ATTRIBUTE, quote=m.group("q"), attribute=m.group("attr")))]


def _center_unit(i: int, raw: str, kind: str):
    _, center, _ = split_tag_runs(raw)
    if is_kag_garbage(_spoken(center)):
        return []
    return [(center, MixedTagMapping(i, kind))]


def _match_emb(i: int, raw: str):
    if not _EMB_RE.search(raw):
        return None
    return _center_unit(i, raw, KIND_EMB)


def _match_cname(i: int, raw: str):
    if not _CNAME_RE.match(raw):
        return None
    return _center_unit(i, raw, KIND_CNAME)


def _match_quotation(i: int, raw: str):
    spans = _QUOTATION_RE.findall(raw)
    if not spans:
        return None
    return [
        (inner, MixedTagMapping(i, KIND_QUOTATION, string_index=n, quote="「"))
        for n, inner in enumerate(spans)
        if not is_kag_garbage(inner)
    ]


def _match_bare(i: int, raw: str):
    t = raw.strip()
    if _SYNTAX_ONLY_RE.match(t):
        return None
    _, center, _ = split_tag_runs(raw)
    spoken = _spoken(center)
    if is_kag_garbage(spoken):
        return None
    if not (JAPANESE_RE.search(spoken) or _LATIN_WORD_RE.search(spoken)):
        return None
    return [(center, MixedTagMapping(i, KIND_BARE))]


MATCHERS = (
    (KIND_EVAL, _match_eval),
    (KIND_ATTRIBUTE, _match_attribute),
    (KIND_EMB, _match_emb),
    (KIND_CNAME, _match_cname),
    (KIND_QUOTATION, _match_quotation),
    (KIND_BARE, _match_bare),
)


def match_line(i: int, raw: str) -> list:
    """Run the matchers in order; the first recognising the line wins."""
    for _kind, matcher in MATCHERS:
        found = matcher(i, raw)
        if found is not None:
            return found
    return []


def _is_block_tag(t: str, name: str) -> bool:
    return t.startswith(f"[{name}") or t.startswith(f"@{name}")


class KAGScriptParser:
    """Extracts and reinserts text in KiriKiri KAG scenario files."""

    def __init__(self):
        self.extract_macro_text = True  # False = skip [macro] bodies entirely

    def extract(self, source: str) -> tuple[list, list]:
        bodies, _ = split_lines(source)
        texts, mapping = [], []
        in_iscript = False
        in_macro = False
        pending = []  # units captured inside the open macro block

        def _flush():
            for text, record in pending:
                texts.append(text)
                mapping.append(record)
            pending.clear()

        for i, raw in enumerate(bodies):
            t = raw.strip()

            if _is_block_tag(t, "iscript"):
                in_iscript = True
                continue
            if _is_block_tag(t, "endscript"):
                in_iscript = False
                continue
            if in_iscript:
                continue

            if _is_block_tag(t, "macro"):
                in_macro = True
                continue
            if _is_block_tag(t, "endmacro"):
                in_macro = False
                _flush()
                continue
            if in_macro and not self.extract_macro_text:
                continue

            if not t or t[0] in ";*":
                continue

            units = match_line(i, raw)
            if in_macro:
                pending.extend(units)
            else:
                for text, record in units:
                    texts.append(text)
                    mapping.append(record)

        _flush()
        return texts, mapping

    def reinsert(self, source: str, mapping: list, texts: list) -> str:
        """Rebuild each mapped line according to its ``extract_kind``.

        Records are applied last to first so that an edit containing
        quotation marks cannot shift the ordinal of an earlier span.
        """
        bodies, endings = split_lines(source)
        for i in range(len(mapping) - 1, -1, -1):
            m = mapping[i]
            text = texts[i] if i < len(texts) and texts[i] is not None else ""
            if not 0 <= m.line_index < len(bodies):
                log.debug("Mapping %d: line %d out of range — skipped", i, m.line_index)
                continue
            bodies[m.line_index] = self._rebuild_line(bodies[m.line_index], m, text)
        return join_lines(bodies, endings)

    @staticmethod
    def _rebuild_line(line: str, m: MixedTagMapping, text: str) -> str:
        if m.extract_kind == KIND_QUOTATION:
            text = inline_breaks(text)
            return replace_nth(_QUOTATION_RE, line, m.string_index,
                               lambda _m: f"「{text}」")

        if m.extract_kind == KIND_ATTRIBUTE:
            text = _NEWLINE_RE.sub(" ", text)
            quote = _usable_quote(text, m.quote)
            if quote is None:
                log.debug("Line %d: %s= value holds both quote kinds, edit skipped",
                          m.line_index, m.attribute)
                return line
            q = re.escape(m.quote)
            pattern = re.compile(
                r'\b(' + re.escape(m.attribute) + '=)' + q + r'(.*?)' + q)
            return pattern.sub(lambda mm: mm.group(1) + quote + text + quote,
                               line, count=1)

        if m.extract_kind == KIND_EVAL:
            q = re.escape(m.quote)
            pattern = re.compile(
                r'(@eval\s+exp=(["\']?)' + re.escape(m.variable_path) + '=' + q
                + r')(.*?)(' + q + ')')
            found = pattern.search(line)
            if found is None:
                return line
            outer = found.group(2)
            if outer and outer != m.quote and outer in text:
                log.debug("Line %d: %s value holds the exp= quote, edit skipped",
                          m.line_index, m.variable_path)
                return line
            value = escape_literal(text, m.quote)
            return line[:found.start(3)] + value + line[found.end(3):]

        prefix, _, suffix = split_tag_runs(line)
        return prefix + inline_breaks(text) + suffix

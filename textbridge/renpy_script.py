"""Ren'Py script (.rpy) dialogue extraction and reinsertion.

A line qualifies when it looks like dialogue (say statements, character
attribute dialogue, bare narration strings, text with {tags}); every
quoted literal on a qualifying line becomes one text unit, addressed by
line number and ordinal position within the line.
"""

import logging
import re

from .project_model import LineScriptMapping
from .text_processor import (
    QUOTED_LITERAL_RE, escape_literal, join_lines, replace_nth, split_lines,
    strip_comment,
)

log = logging.getLogger(__name__)

# Statement keywords that never start a dialogue line.
DIALOG_BLACKLIST = (
    "label", "key", "style", "text_font", "font", "if", "else", "at", "align",
    "easeout", "size", "hovered", "unhovered", "import", "config", "with",
    "def", "move", "background", "text", "add", "action", "screen", "sound",
    "outlines", "outline_scaling", "menu", "jump", "scene", "init", "show",
    "hide", "stop", "play", "queue", "transform", "define", "image", "window",
    "voice", "pause", "call", "return", "renpy", "python",
)

_KEYWORD_START_RE = re.compile(
    r'^(' + "|".join(DIALOG_BLACKLIST) + r')\b', re.IGNORECASE)
_KEYWORD_ANY_RE = re.compile(
    r'\b(' + "|".join(DIALOG_BLACKLIST) + r')\b', re.IGNORECASE)

# identifier followed by a quoted string: e "Hello" / narrator 'Hi'
_SAY_OVERRIDE_RE = re.compile(r'^[a-zA-Z_]\w*\s+["\']')
_ASSIGNMENT_RE = re.compile(r'^[\w\s]*=[^"\'`]')
_ASSET_FILE_RE = re.compile(
    r'\.(png|jpe?g|gif|webp|mp3|ogg|wav|mp4|webm|m4a|avi|mov|ttf|otf|pfb|pfm|'
    r'ps|woff2?|eot|svg)["\']?$',
    re.IGNORECASE,
)
_ASSET_PATH_RE = re.compile(
    r'["\'](images?|audio|music|voice|bg|sfx|movie|video|sounds?)/', re.IGNORECASE)

_ATTRIBUTE_DIALOG_RE = re.compile(r'^[\w\s]+:\s*["\'].*["\']')
_FULL_STRING_RE = re.compile(r'^"((?:\\.|[^"\\])*)"$')
_SAY_RE = re.compile(r'^[\w]+\s+(["\'])(.+?)\1')
_STRING_INSIDE_RE = re.compile(r'"((?:\\.|[^"\\])*)"')
_DOTS_ONLY_RE = re.compile(r'^[.\s]+$')
_TAG_RE = re.compile(r'\{.*?\}')
_ALNUM_RE = re.compile(r'[A-Za-z0-9À-ỹ]')


def is_dialog_line(line: str) -> bool:
    """Decide whether a raw script line carries translatable dialogue."""
    t = strip_comment(line.strip()).strip()
    if not t:
        return False

    says = bool(_SAY_OVERRIDE_RE.match(t))

    if _KEYWORD_START_RE.match(t) and not says:
        return False
    if _ASSIGNMENT_RE.match(t):
        return False
    if _ASSET_FILE_RE.search(t) or _ASSET_PATH_RE.search(t):
        return False

    outside_quotes = QUOTED_LITERAL_RE.sub("", t)
    if _KEYWORD_ANY_RE.search(outside_quotes) and not says:
        return False

    if _ATTRIBUTE_DIALOG_RE.match(t):
        return True
    if _FULL_STRING_RE.match(t):
        return True
    if _SAY_RE.match(t):
        return True

    m = _STRING_INSIDE_RE.search(t)
    if m:
        text = m.group(1).strip()
        return bool(text) and not _DOTS_ONLY_RE.match(text)

    return bool(_TAG_RE.search(t) and _ALNUM_RE.search(t))


class RenPyScriptParser:
    """Extracts and reinserts quoted dialogue literals in .rpy sources."""

    def extract(self, source: str) -> tuple[list, list]:
        """Return ``(texts, mapping)`` for every literal on dialogue lines.

        Literals are reported in their raw form (escapes kept).  Literals
        inside a trailing comment are ignored.
        """
        bodies, _ = split_lines(source)
        texts, mapping = [], []
        for i, line in enumerate(bodies):
            if not is_dialog_line(line):
                continue
            code_end = len(strip_comment(line))
            for n, m in enumerate(QUOTED_LITERAL_RE.finditer(line)):
                if m.start() >= code_end:
                    break
                raw = m.group(0)
                texts.append(raw[1:-1])
                mapping.append(LineScriptMapping(i, n, raw[0]))
        return texts, mapping

    def reinsert(self, source: str, mapping: list, texts: list) -> str:
        """Replace each mapped literal with its edited text.

        Missing trailing texts count as empty strings; out-of-range line
        indices are skipped.
        """
        bodies, endings = split_lines(source)
        for i, m in enumerate(mapping):
            text = texts[i] if i < len(texts) and texts[i] is not None else ""
            if not 0 <= m.line_index < len(bodies):
                log.debug("Mapping %d: line %d out of range — skipped", i, m.line_index)
                continue
            quote = m.quote

            def _literal(_match, text=text, quote=quote):
                return quote + escape_literal(text, quote) + quote

            bodies[m.line_index] = replace_nth(
                QUOTED_LITERAL_RE, bodies[m.line_index], m.string_index, _literal)
        return join_lines(bodies, endings)

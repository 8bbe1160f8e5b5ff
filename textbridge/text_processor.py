"""Line and literal helpers shared by the line-oriented script parsers.

Splitting keeps each line's own terminator so that a document rebuilt
from its lines is byte-identical to the source, whatever mix of LF and
CRLF it used.
"""

import re

_NEWLINE_RE = re.compile(r'\r\n|\n')

# Any single- or double-quoted literal, honouring backslash escapes.
QUOTED_LITERAL_RE = re.compile(r'"(?:[^"\\]|\\.)*"|\'(?:[^\'\\]|\\.)*\'')

# Runs of [tags] (with surrounding whitespace) at either end of a line.
_LEADING_TAGS_RE = re.compile(r'^\s*(?:\[[^\]]*\]\s*)*')
_TRAILING_TAGS_RE = re.compile(r'\s*(?:\[[^\]]*\]\s*)*$')


def split_lines(source: str) -> tuple[list, list]:
    """Split *source* into line bodies and their terminators.

    ``"a\\r\\nb\\n"`` → ``(["a", "b", ""], ["\\r\\n", "\\n", ""])``.
    """
    bodies, endings = [], []
    pos = 0
    for m in _NEWLINE_RE.finditer(source):
        bodies.append(source[pos:m.start()])
        endings.append(m.group())
        pos = m.end()
    bodies.append(source[pos:])
    endings.append("")
    return bodies, endings


def join_lines(bodies: list, endings: list) -> str:
    """Inverse of :func:`split_lines`."""
    return "".join(b + e for b, e in zip(bodies, endings))


def split_tag_runs(line: str) -> tuple[str, str, str]:
    """Split a line into (prefix, center, suffix) around its outer tag runs.

    The prefix is the leading whitespace plus any run of ``[tag]`` tokens,
    the suffix the trailing run; center is what lies between, trimmed.
    ``prefix + center + suffix`` always reproduces *line*.
    """
    prefix = _LEADING_TAGS_RE.match(line).group(0)
    rest = line[len(prefix):]
    suffix = _TRAILING_TAGS_RE.search(rest).group(0)
    center = rest[:len(rest) - len(suffix)]
    stripped = center.strip()
    if stripped != center:
        # Whitespace inside center belongs to the tag runs so the
        # rebuilt line stays identical.
        lead = center[:len(center) - len(center.lstrip())]
        trail = center[len(center.rstrip()):]
        prefix += lead
        suffix = trail + suffix
    return prefix, stripped, suffix


def strip_comment(line: str, marker: str = "#") -> str:
    """Return *line* up to its first comment marker outside quotes.

    Tracks whether the scan is inside a '…' or "…" literal, so a marker
    inside an open literal is not a comment start.  A quote
    preceded by a backslash does not toggle the state.
    """
    state = None  # None | "'" | '"'
    prev = ""
    for i, c in enumerate(line):
        if c in ("'", '"') and prev != "\\":
            if state is None:
                state = c
            elif state == c:
                state = None
        elif c == marker and state is None:
            return line[:i]
        prev = c
    return line


def escape_literal(text: str, quote: str) -> str:
    """Escape *text* for use between two *quote* characters.

    Existing backslash escape sequences are kept as they are, so the raw
    inner text of a literal escapes to itself.  Bare quote characters of
    the literal's kind, a trailing lone backslash and real newlines are
    escaped.
    """
    out = []
    i = 0
    n = len(text)
    while i < n:
        c = text[i]
        if c == "\\":
            if i + 1 < n and text[i + 1] not in "\r\n":
                out.append(text[i:i + 2])
                i += 2
                continue
            out.append("\\\\")
        elif c == quote:
            out.append("\\" + quote)
        elif c == "\r":
            if i + 1 < n and text[i + 1] == "\n":
                i += 1
            out.append("\\n")
        elif c == "\n":
            out.append("\\n")
        else:
            out.append(c)
        i += 1
    return "".join(out)


def replace_nth(pattern: re.Pattern, line: str, nth: int, replacement) -> str:
    """Replace only the *nth* match of *pattern* in *line*.

    *replacement* is called with the match object and returns the new
    text for that occurrence.  Other occurrences are left untouched.
    """
    count = -1

    def _sub(m):
        nonlocal count
        count += 1
        if count == nth:
            return replacement(m)
        return m.group(0)

    return pattern.sub(_sub, line)


def inline_breaks(text: str, break_tag: str = "[r]") -> str:
    """Turn real newlines in *text* into the script's in-line break tag.

    Tag-script lines cannot span several source lines, so an edited text
    unit must stay on one.
    """
    return _NEWLINE_RE.sub(break_tag, text)

"""Heuristic classifiers deciding whether a candidate string is translatable.

Every predicate is driven by an ordered table of named rules so that the
rule sets stay explicit and individually testable.  The first rule that
fires decides; none of these predicates carry state between calls.

Three tables exist:

- ``GARBAGE_RULES``: negative filters shared by every format family.
- ``DIALOGUE_EVIDENCE_RULES``: positive evidence required for event
  dialogue lines (401/405) on top of the negative filters.
- ``CHOICE_RULES``: the lighter negative set used for menu choices,
  branch labels and names.
"""

import re

from . import CONTROL_CODE_RE, JAPANESE_RE, LETTER_RE

RULESET_VERSION = 2

# Short UI / flow-control tokens that show up as parameters but are not text.
_UI_TOKENS = frozenset({
    "retry", "correct", "start", "skip", "skipit", "again", "player", "end",
    "fail", "flag", "options", "theend", "greet", "menu", "title", "continue",
    "load", "save", "settings", "config", "credits", "back", "next", "yes",
    "no", "ok", "cancel", "exit", "quit", "help",
})
_FLAG_TOKEN_RE = re.compile(r'^flag[0-9]$', re.IGNORECASE)

# Genuine two-letter words allowed through the length filter.
_SHORT_WORDS = frozenset({
    "ok", "no", "go", "up", "hi", "me", "we", "he", "it", "is", "am", "an",
    "at", "be", "by", "do", "if", "in", "of", "on", "or", "so", "to", "us",
    "oh", "ah",
})

_NUMERIC_RE = re.compile(r'^\d+$')
_RESOURCE_ID_RE = re.compile(
    r'^(TILESET|POPTEXT|SE|BGM|BGS|ME|ANIM|COMMON|VAR|SWITCH|ACTOR|CLASS|SKILL|'
    r'ITEM|WEAPON|ARMOR|ENEMY|TROOP|STATE|EVENT|MAP|SYS)-',
    re.IGNORECASE,
)
_MARKUP_RES = (
    re.compile(r'^</?\w+(\s+[^>]*)?>\s*$'),        # <b>, </font>, <span x="1">
    re.compile(r'^(<br\s*/?>)+$', re.IGNORECASE),  # <br><br/>
    re.compile(r'^<[^>]+>$'),                       # <anything>
)
_ESCAPE_CODE_RES = (
    re.compile(r'^\\[a-z]+(\[.*?\])?$', re.IGNORECASE),       # \c[2], \fs[24]
    re.compile(r'^\\[ivcnpg]\[\d+\]$', re.IGNORECASE),        # \i[5]
    re.compile(r'^\\c\[\d+\].+\\c\[0\]$', re.IGNORECASE),     # \c[2]Gold\c[0]
)
_PUNCTUATION_RE = re.compile(r'^[.…,!?;:\-_=+*#@$%^&()\[\]{}|/\\<>~`\'"]+$')
_CODE_PREFIX_RE = re.compile(
    r'^(this\.|self\.|game_|\$game|@|undefined|null|true|false|var |let |const )'
)


def _is_blank_or_numeric(t: str) -> bool:
    return not t or bool(_NUMERIC_RE.match(t))


def _is_ui_token(t: str) -> bool:
    low = t.lower()
    return low in _UI_TOKENS or bool(_FLAG_TOKEN_RE.match(t))


def _is_resource_id(t: str) -> bool:
    return bool(_RESOURCE_ID_RE.match(t))


def _is_markup_only(t: str) -> bool:
    return any(r.match(t) for r in _MARKUP_RES)


def _is_escape_code(t: str) -> bool:
    return any(r.match(t) for r in _ESCAPE_CODE_RES)


def _is_punctuation_only(t: str) -> bool:
    return bool(_PUNCTUATION_RE.match(t))


def _is_code_like(t: str) -> bool:
    return bool(_CODE_PREFIX_RE.match(t))


def _has_no_letter(t: str) -> bool:
    return not LETTER_RE.search(t)


def _is_too_short(t: str) -> bool:
    return len(t) <= 2 and t.lower() not in _SHORT_WORDS


def _is_single_glyph(t: str) -> bool:
    return len(re.sub(r'\s', '', t)) <= 1


# (name, predicate) pairs, evaluated in order against the stripped text.
GARBAGE_RULES = (
    ("blank-or-numeric", _is_blank_or_numeric),
    ("ui-token", _is_ui_token),
    ("resource-id", _is_resource_id),
    ("markup-only", _is_markup_only),
    ("escape-code", _is_escape_code),
    ("punctuation-only", _is_punctuation_only),
    ("code-like", _is_code_like),
    ("no-letter", _has_no_letter),
    ("too-short", _is_too_short),
    ("single-glyph", _is_single_glyph),
)


def garbage_reason(text) -> str | None:
    """Return the name of the first garbage rule matching *text*, or None."""
    if not isinstance(text, str):
        return "blank-or-numeric"
    t = text.strip()
    for name, rule in GARBAGE_RULES:
        if rule(t):
            return name
    return None


def is_garbage(text) -> bool:
    """True when *text* is control/structural syntax rather than real text."""
    return garbage_reason(text) is not None


# ── Dialogue (event message lines) ───────────────────────────────────

# "Name." speaker prefix glued to the line: Alice.Hello there!
_SPEAKER_PREFIX_RE = re.compile(r'^([A-Z][A-Za-z0-9_\-]{0,23}\.)(?=[^\s.])')
_BARE_COMMAND_RE = re.compile(r'^/\w+$')

_PRONOUN_RE = re.compile(
    r"\b(i|i'm|i'll|i've|i'd|me|my|mine|myself|you|your|yours|yourself|"
    r"we|us|our|ours|he|him|his|she|her|hers|they|them|their|theirs|"
    r"it|its)\b"
    r'|私|僕|俺|あなた|お前|君|彼女|彼|わたし|ぼく|おれ',
    re.IGNORECASE,
)
_TERMINAL_PUNCT_RE = re.compile(r'[!?…！？。]|\.\.\.')
_MID_SENTENCE_RE = re.compile(r'[.,;:]\s+[A-Z]')
_JAPANESE_RUN_RE = re.compile(JAPANESE_RE.pattern + r'{2,}')


def split_speaker_prefix(text: str) -> tuple[str, str]:
    """Split ``"Alice.Hello!"`` into ``("Alice.", "Hello!")``.

    Returns ``("", text)`` when no speaker prefix is present.
    """
    m = _SPEAKER_PREFIX_RE.match(text)
    if not m:
        return "", text
    return m.group(1), text[m.end():]


def normalize_dialogue(text: str) -> str:
    """Drop engine escape codes and tags, collapse whitespace."""
    cleaned = CONTROL_CODE_RE.sub(" ", text)
    return re.sub(r'\s+', ' ', cleaned).strip()


def _has_pronoun(t: str) -> bool:
    return bool(_PRONOUN_RE.search(t))


def _has_sentence_punctuation(t: str) -> bool:
    return bool(_TERMINAL_PUNCT_RE.search(t) or _MID_SENTENCE_RE.search(t))


def _is_long_sentence(t: str) -> bool:
    return len(t) >= 16 and len(t.split()) >= 3


def _has_japanese_run(t: str) -> bool:
    return bool(_JAPANESE_RUN_RE.search(t))


# Positive evidence: at least one must fire for a dialogue line to count.
DIALOGUE_EVIDENCE_RULES = (
    ("pronoun", _has_pronoun),
    ("sentence-punctuation", _has_sentence_punctuation),
    ("long-sentence", _is_long_sentence),
    ("japanese-run", _has_japanese_run),
)


def dialogue_evidence(text: str) -> str | None:
    """Return the first positive evidence rule firing on *text*, or None."""
    for name, rule in DIALOGUE_EVIDENCE_RULES:
        if rule(text):
            return name
    return None


def is_dialogue_text(text) -> bool:
    """Stronger check used for event message lines (codes 401/405)."""
    if not isinstance(text, str):
        return False
    prefix, body = split_speaker_prefix(text)
    if prefix and (not body.strip() or _BARE_COMMAND_RE.match(body.strip())):
        return False
    if is_garbage(body):
        return False
    normalized = normalize_dialogue(body)
    if not normalized:
        return False
    return dialogue_evidence(normalized) is not None


# ── Choices, branch labels, names ────────────────────────────────────

_NON_CHOICE_WORDS = frozenset({
    "true", "false", "null", "undefined", "none", "nan", "default",
})
# Identifier: one token carrying an underscore, a digit or a camelCase hump.
_IDENTIFIER_RE = re.compile(r'^(?=.*(?:[_\d]|[a-z][A-Z]))[A-Za-z_][A-Za-z0-9_]*$')
_ASSET_PATH_RE = re.compile(
    r'^[^\s]*[/\\][^\s]*$'                                  # img/pictures/x
    r'|\.(png|jpe?g|gif|webp|bmp|ogg|m4a|mp3|wav|mp4|webm|json|js)$',
    re.IGNORECASE,
)


def _is_identifier(t: str) -> bool:
    return bool(_IDENTIFIER_RE.match(t))


def _is_non_choice_word(t: str) -> bool:
    return t.lower() in _NON_CHOICE_WORDS


def _is_asset_path(t: str) -> bool:
    return bool(_ASSET_PATH_RE.search(t))


CHOICE_RULES = (
    ("blank-or-numeric", _is_blank_or_numeric),
    ("punctuation-only", _is_punctuation_only),
    ("escape-code", _is_escape_code),
    ("markup-only", _is_markup_only),
    ("no-letter", _has_no_letter),
    ("identifier", _is_identifier),
    ("non-choice-word", _is_non_choice_word),
    ("asset-path", _is_asset_path),
)


def choice_rejection(text) -> str | None:
    """Return the first choice rule rejecting *text*, or None."""
    if not isinstance(text, str):
        return "blank-or-numeric"
    t = text.strip()
    for name, rule in CHOICE_RULES:
        if rule(t):
            return name
    return None


def is_choice_text(text) -> bool:
    """Lighter check for menu choices and other short display strings."""
    return choice_rejection(text) is None

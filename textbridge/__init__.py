"""Game Script Text Bridge — shared constants."""

import re

# Format tags returned by the detector and carried on every extraction.
FORMAT_RPGMV_JSON = "rpgmv-json"
FORMAT_RENPY = "renpy-script"
FORMAT_TYRANO = "tyrano-ks"
FORMAT_KAG = "kag-ks"
FORMAT_UNKNOWN = "unknown"

SUPPORTED_FORMATS = (FORMAT_RPGMV_JSON, FORMAT_RENPY, FORMAT_TYRANO, FORMAT_KAG)

# Regex matching RPG Maker control codes that the LLM should never touch.
# Order matters — longer patterns first to avoid partial matches.
CONTROL_CODE_RE = re.compile(
    r'\\[A-Za-z]+\[\d*\]'      # \V[1], \N[2], \C[3], \FS[24], etc.
    r'|\\[A-Za-z]+<[^>]*>'      # \N<name> namebox
    r'|\\[{}$.|!><^]'           # \{, \}, \$, \., \|, \!, \>, \<, \^
    r'|<[^>]+>'                 # HTML-like tags: <br>, <WordWrap>, <B>, etc.
    r'|%\d+'                    # %1, %2, etc. — RPG Maker format specifiers
)

# Japanese characters — hiragana, katakana, CJK kanji.
JAPANESE_RE = re.compile(
    r'[\u3040-\u309F'   # Hiragana
    r'\u30A0-\u30FF'    # Katakana
    r'\u4E00-\u9FFF'    # CJK Unified Ideographs (kanji)
    r'\u3400-\u4DBF'    # CJK Extension A
    r'\uFF65-\uFF9F]'   # Halfwidth Katakana
)

# Letters the classifiers accept as "real text": Latin incl. accented /
# Vietnamese range, kana and kanji.
LETTER_RE = re.compile(
    r'[A-Za-z\u00C0-\u1EF9\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FFF]'
)

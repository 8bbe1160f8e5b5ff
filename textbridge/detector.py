"""Format detection by extension, with content sniffing for shared ``.ks``."""

import os
import re

from . import FORMAT_KAG, FORMAT_RENPY, FORMAT_RPGMV_JSON, FORMAT_TYRANO, FORMAT_UNKNOWN

# Containers recognised by extension only; nothing extracts from them.
BINARY_FORMATS = {
    ".rpyc": "renpy-compiled",
    ".rpa": "renpy-archive",
    ".rvdata2": "rgss-data",
    ".rvdata": "rgss-data",
    ".rxdata": "rgss-data",
    ".xp3": "kirikiri-archive",
    ".rpgmvp": "rpgmv-encrypted",
    ".rpgmvo": "rpgmv-encrypted",
    ".rpgmvm": "rpgmv-encrypted",
    ".rpgmvw": "rpgmv-encrypted",
    ".png_": "rpgmz-encrypted",
    ".ogg_": "rpgmz-encrypted",
}

# .ks sniffing rules, first match wins.
KS_SNIFF_RULES = (
    ("at-directive", re.compile(r'@[A-Za-z0-9_]+'), FORMAT_KAG),
    ("quotation-span", re.compile(r'「[^」]+」'), FORMAT_KAG),
    ("bracket-tag", re.compile(r'\[[A-Za-z0-9_]+[^\]]*\]'), FORMAT_TYRANO),
    ("iscript-block", re.compile(r'\[iscript\]', re.IGNORECASE), FORMAT_TYRANO),
    ("tyrano-keyword", re.compile(r'\[(cm|eval|jump|tb_)', re.IGNORECASE), FORMAT_TYRANO),
)


def sniff_ks(text: str) -> str:
    for _name, pattern, fmt in KS_SNIFF_RULES:
        if pattern.search(text):
            return fmt
    return FORMAT_TYRANO


def detect_format(filename: str, data: bytes = b"") -> str:
    """Return the format tag for an uploaded artifact.

    Always returns a tag; ``unknown`` for unrecognised extensions.
    """
    ext = os.path.splitext(filename.lower())[1]
    if ext == ".json":
        return FORMAT_RPGMV_JSON
    if ext == ".rpy":
        return FORMAT_RENPY
    if ext == ".ks":
        return sniff_ks(data.decode("utf-8", errors="replace"))
    return BINARY_FORMATS.get(ext, FORMAT_UNKNOWN)

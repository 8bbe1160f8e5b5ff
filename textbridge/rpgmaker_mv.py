"""RPG Maker MV/MZ event JSON parser and writer.

Handles extraction of translatable strings from event command trees
(CommonEvents.json, Troops.json, Map###.json) and writing edited strings
back into the same JSON structure.  Every text unit is addressed by its
container, command index and parameter path, so reinsertion never has to
search for the original text — except for strings embedded inside
script-call expressions, which are located by character span.
"""

import json
import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional, Union

from .classifier import is_choice_text, is_dialogue_text, split_speaker_prefix
from .errors import InvalidSourceError
from .project_model import EventTextMapping
from .script_strings import (
    apply_script_edits, find_script_strings, render_script_literal,
)

log = logging.getLogger(__name__)

# RPG Maker event command codes that contain translatable text
CODE_SHOW_TEXT = 401          # Show Text line — parameters[0] is text
CODE_SHOW_CHOICES = 102       # Show Choices — parameters[0] is list of strings
CODE_WHEN_CHOICE = 402        # When [choice] — parameters[1] is the choice label
CODE_SCROLL_TEXT = 405        # Scroll Text line — parameters[0] is text
CODE_LABEL = 118              # Label — parameters[0] is label text
CODE_JUMP_TO_LABEL = 119      # Jump to Label — parameters[0] is label text
CODE_CHANGE_NAME = 320        # Change Actor Name — params[0]=actorId, params[1]=name
CODE_CHANGE_NICKNAME = 324    # Change Actor Nickname — params[0]=actorId, params[1]=nickname
CODE_CHANGE_PROFILE = 325     # Change Actor Profile — params[0]=actorId, params[1]=profile
CODE_SCRIPT = 355             # Script (first line) — params[0]=JS code
CODE_PLUGIN_COMMAND_MV = 356  # Plugin Command (MV) — params[0]=command string
CODE_SCRIPT_CONT = 655        # Script (continuation) — params[0]=JS code

LOC_DIALOGUE = "dialogue"     # scalar, checked with is_dialogue_text
LOC_CHOICE = "choice"         # scalar, checked with is_choice_text
LOC_CHOICE_LIST = "choices"   # array of strings, each checked with is_choice_text
LOC_SCRIPT = "script"         # expression string, routed to script_strings

# Command code → (parameter index, location kind)
TEXT_LOCATIONS = {
    CODE_SHOW_TEXT:         (0, LOC_DIALOGUE),
    CODE_SCROLL_TEXT:       (0, LOC_DIALOGUE),
    CODE_SHOW_CHOICES:      (0, LOC_CHOICE_LIST),
    CODE_WHEN_CHOICE:       (1, LOC_CHOICE),
    CODE_LABEL:             (0, LOC_CHOICE),
    CODE_JUMP_TO_LABEL:     (0, LOC_CHOICE),
    CODE_CHANGE_NAME:       (1, LOC_CHOICE),
    CODE_CHANGE_NICKNAME:   (1, LOC_CHOICE),
    CODE_CHANGE_PROFILE:    (1, LOC_CHOICE),
    CODE_SCRIPT:            (0, LOC_SCRIPT),
    CODE_SCRIPT_CONT:       (0, LOC_SCRIPT),
    CODE_PLUGIN_COMMAND_MV: (0, LOC_SCRIPT),
}

EXTRACT_PLAIN = "plain"
EXTRACT_SCRIPT = "script-embedded"


# ── Parsed shapes ────────────────────────────────────────────────────

@dataclass
class EventArrayData:
    """Top-level array: CommonEvents (items with ``list``) or Troops
    (items with ``pages``)."""
    items: list


@dataclass
class MapData:
    """Top-level object with an ``events`` collection (Map###.json)."""
    map: dict


@dataclass
class InvalidShape:
    """Valid JSON that is neither an event array nor a map."""
    reason: str


ParsedEventData = Union[EventArrayData, MapData, InvalidShape]


class RPGMakerMVParser:
    """Parser for RPG Maker MV/MZ event JSON data files."""

    def __init__(self):
        self.extract_script_strings = True  # Scan 355/655/356 expressions for text

    # ── Parsing ──────────────────────────────────────────────────────

    @staticmethod
    def parse(source: str) -> ParsedEventData:
        """Parse *source* and classify its shape.

        Raises:
            InvalidSourceError: the text is not JSON.
        """
        try:
            data = json.loads(source)
        except (json.JSONDecodeError, ValueError) as e:
            raise InvalidSourceError(f"Invalid JSON: {e}") from e
        if isinstance(data, list):
            return EventArrayData(data)
        if isinstance(data, dict) and isinstance(data.get("events"), (list, dict)):
            return MapData(data)
        return InvalidShape("Unsupported JSON format")

    @staticmethod
    def _params_path(parsed: ParsedEventData, container: list, command_index: int) -> tuple:
        """JSON path of the ``parameters`` array of an addressed command."""
        if isinstance(parsed, MapData):
            return ("events", container[0], "pages", container[1],
                    "list", command_index, "parameters")
        if len(container) == 1:
            return (container[0], "list", command_index, "parameters")
        return (container[0], "pages", container[1], "list", command_index, "parameters")

    @staticmethod
    def _iter_command_lists(parsed: ParsedEventData):
        """Yield ``(container, command_list)`` in traversal order."""
        if isinstance(parsed, EventArrayData):
            for ev_index, item in enumerate(parsed.items):
                if not item or not isinstance(item, dict):
                    continue
                if isinstance(item.get("list"), list):
                    yield [ev_index], item["list"]
                for page_index, page in enumerate(item.get("pages") or []):
                    if page and isinstance(page, dict) and isinstance(page.get("list"), list):
                        yield [ev_index, page_index], page["list"]
        elif isinstance(parsed, MapData):
            events = parsed.map["events"]
            keys = range(len(events)) if isinstance(events, list) else list(events.keys())
            for key in keys:
                event = events[key]
                if not event or not isinstance(event, dict):
                    continue
                for page_index, page in enumerate(event.get("pages") or []):
                    if page and isinstance(page, dict) and isinstance(page.get("list"), list):
                        yield [key, page_index], page["list"]

    @staticmethod
    def _resolve_command(parsed: ParsedEventData, container: list,
                         command_index: int) -> Optional[dict]:
        """Find the command addressed by a mapping record, or None."""
        try:
            if isinstance(parsed, EventArrayData):
                item = parsed.items[container[0]]
                cmd_list = (item["list"] if len(container) == 1
                            else item["pages"][container[1]]["list"])
            elif isinstance(parsed, MapData):
                event = parsed.map["events"][container[0]]
                cmd_list = event["pages"][container[1]]["list"]
            else:
                return None
            cmd = cmd_list[command_index]
        except (IndexError, KeyError, TypeError):
            return None
        return cmd if isinstance(cmd, dict) else None

    # ── Extraction ───────────────────────────────────────────────────

    def extract(self, source: str) -> tuple[list, list]:
        """Extract ``(texts, mapping)`` from event JSON text.

        Raises:
            InvalidSourceError: not JSON, or JSON of an unsupported shape.
        """
        parsed = self.parse(source)
        if isinstance(parsed, InvalidShape):
            raise InvalidSourceError(parsed.reason)

        texts, mapping = [], []
        for container, cmd_list in self._iter_command_lists(parsed):
            for cmd_index, cmd in enumerate(cmd_list):
                if isinstance(cmd, dict):
                    self._extract_command(cmd, container, cmd_index, texts, mapping)
        return texts, mapping

    def _extract_command(self, cmd: dict, container: list, cmd_index: int,
                         texts: list, mapping: list):
        location = TEXT_LOCATIONS.get(cmd.get("code"))
        if location is None:
            return
        param_index, loc = location
        params = cmd.get("parameters") or []
        if len(params) <= param_index:
            return
        value = params[param_index]

        if loc == LOC_DIALOGUE:
            if isinstance(value, str) and is_dialogue_text(value):
                prefix, body = split_speaker_prefix(value)
                texts.append(body)
                mapping.append(EventTextMapping(
                    list(container), cmd_index, param_index, speaker_prefix=prefix))

        elif loc == LOC_CHOICE:
            if isinstance(value, str) and is_choice_text(value):
                texts.append(value)
                mapping.append(EventTextMapping(list(container), cmd_index, param_index))

        elif loc == LOC_CHOICE_LIST:
            if not isinstance(value, list):
                return
            for ci, choice in enumerate(value):
                if isinstance(choice, str) and is_choice_text(choice):
                    texts.append(choice)
                    mapping.append(EventTextMapping(
                        list(container), cmd_index, [param_index, ci]))

        elif loc == LOC_SCRIPT and self.extract_script_strings:
            if not isinstance(value, str):
                return
            for found in find_script_strings(value):
                texts.append(found.text)
                mapping.append(EventTextMapping(
                    list(container), cmd_index, param_index,
                    extract_kind=EXTRACT_SCRIPT,
                    original_text=found.text,
                    original_match=found.original_match,
                    expression_kind=found.kind,
                    quote=found.quote,
                    spans=[list(s) for s in found.spans],
                ))

    # ── Reinsertion ──────────────────────────────────────────────────

    def reinsert(self, source: str, mapping: list, texts: list) -> str:
        """Write *texts* back at the addresses in *mapping*.

        *source* must be the originally extracted JSON text.  Only string
        tokens whose value changed are rewritten in place; every other byte
        of *source* (indentation, key order, escapes) is kept.  Missing
        trailing texts count as empty strings; records whose address no
        longer resolves are skipped.
        """
        parsed = self.parse(source)
        if isinstance(parsed, InvalidShape):
            raise InvalidSourceError(parsed.reason)

        changes = {}  # JSON path → new string value
        # (container, command, param) → pending script edits
        script_edits = defaultdict(list)
        script_targets = {}

        for i, m in enumerate(mapping):
            text = texts[i] if i < len(texts) else ""
            if text is None:
                text = ""
            cmd = self._resolve_command(parsed, m.container, m.command_index)
            params = cmd.get("parameters") if cmd else None
            if not isinstance(params, list):
                log.debug("Mapping %d: command %s/%d not found — skipped",
                          i, m.container, m.command_index)
                continue
            base = self._params_path(parsed, m.container, m.command_index)

            if m.extract_kind == EXTRACT_SCRIPT:
                if text == m.original_text:
                    continue
                idx = m.param_index
                if not (isinstance(idx, int) and idx < len(params)
                        and isinstance(params[idx], str)):
                    log.debug("Mapping %d: script parameter missing — skipped", i)
                    continue
                key = (tuple(m.container), m.command_index, idx)
                script_targets[key] = (params, base + (idx,))
                replacement = render_script_literal(
                    m.expression_kind, m.original_match, m.quote, text)
                for start, end in m.spans:
                    script_edits[key].append((start, end, m.original_match, replacement))
                continue

            value = m.speaker_prefix + text
            sub_path = self._write_param(params, m.param_index, value, i)
            if sub_path is not None:
                changes[base + sub_path] = value

        for key, edits in script_edits.items():
            params, path = script_targets[key]
            rewritten = apply_script_edits(params[key[2]], edits)
            if rewritten != params[key[2]]:
                params[key[2]] = rewritten
                changes[path] = rewritten

        if not changes:
            return source
        return splice_string_tokens(source, changes)

    @staticmethod
    def _write_param(params: list, param_index, value: str, record: int):
        """Store *value*; return its path below ``parameters`` when it changed."""
        if isinstance(param_index, list):
            outer, inner = param_index
            if (outer < len(params) and isinstance(params[outer], list)
                    and inner < len(params[outer])):
                if params[outer][inner] == value:
                    return None
                params[outer][inner] = value
                return (outer, inner)
        elif isinstance(param_index, int) and param_index < len(params):
            if params[param_index] == value:
                return None
            params[param_index] = value
            return (param_index,)
        log.debug("Mapping %d: parameter %s not found — skipped", record, param_index)
        return None


# ── In-place token rewriting ─────────────────────────────────────────

_WS_RE = re.compile(r'[ \t\r\n]*')
_STRING_TOKEN_RE = re.compile(r'"(?:[^"\\]|\\.)*"', re.DOTALL)
_SCALAR_TOKEN_RE = re.compile(
    r'-?(?:Infinity|\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)|true|false|null|NaN')


def locate_string_tokens(source: str, paths) -> dict:
    """Map each JSON path in *paths* to the ``(start, end)`` of its string
    token in *source*.

    *source* must already be known to be valid JSON.  Paths whose value is
    not a string token are left out of the result.
    """
    wanted = set(paths)
    found = {}

    def skip_ws(pos):
        return _WS_RE.match(source, pos).end()

    def walk(pos, path):
        pos = skip_ws(pos)
        c = source[pos]
        if c == '"':
            end = _STRING_TOKEN_RE.match(source, pos).end()
            if path in wanted:
                found[path] = (pos, end)
            return end
        if c == "[":
            pos = skip_ws(pos + 1)
            index = 0
            while source[pos] != "]":
                pos = skip_ws(walk(pos, path + (index,)))
                if source[pos] == ",":
                    pos = skip_ws(pos + 1)
                index += 1
            return pos + 1
        if c == "{":
            pos = skip_ws(pos + 1)
            while source[pos] != "}":
                key_end = _STRING_TOKEN_RE.match(source, pos).end()
                key = json.loads(source[pos:key_end])
                pos = skip_ws(key_end) + 1  # past ':'
                pos = skip_ws(walk(pos, path + (key,)))
                if source[pos] == ",":
                    pos = skip_ws(pos + 1)
            return pos + 1
        return _SCALAR_TOKEN_RE.match(source, pos).end()

    walk(0, ())
    return found


def splice_string_tokens(source: str, changes: dict) -> str:
    """Replace the string tokens at the paths in *changes* with new values.

    Replacements are applied right to left so earlier offsets stay valid.
    """
    spans = locate_string_tokens(source, changes)
    for path in changes:
        if path not in spans:
            log.debug("No string token at %s — skipped", list(path))
    for path, (start, end) in sorted(spans.items(), key=lambda kv: kv[1][0],
                                     reverse=True):
        token = json.dumps(changes[path], ensure_ascii=False)
        source = source[:start] + token + source[end:]
    return source

"""Ollama REST API wrapper for LLM translation of extracted text units."""

import json
import logging
import re

import requests

from . import CONTROL_CODE_RE, JAPANESE_RE

log = logging.getLogger(__name__)


# Engine control codes plus script markup: Ren'Py {tags} / [interpolation],
# Tyrano and KAG [tags].  None of it may reach the model as text.
PROTECTED_RE = re.compile(
    CONTROL_CODE_RE.pattern
    + r'|\{/?[A-Za-z_#=][^{}]*\}'   # {i}, {/i}, {color=#f00}, {w=0.5}
    + r'|\[[^\[\]]*\]'              # [player_name], [r], [l], [emb exp=...]
)

# Regex to strip Qwen3 thinking blocks (<think>...</think>).
_THINK_RE = re.compile(r'<think>.*?</think>\s*', re.DOTALL)

# Regex to strip translator notes/commentary the LLM sometimes appends.
_NOTE_STRIP_RE = re.compile(
    r'(?:'
    r'\n\s*[-—–]{2,}\s*\n.*'                     # --- separator followed by notes
    r'|\n\s*\*{2,}\s*\n.*'                        # *** separator followed by notes
    r'|\n\s*(?:Note|Notes|Translation [Nn]ote|Translator\'?s? [Nn]ote|TL [Nn]ote)s?\s*[:：].*'
    r'|\n\s*\((?:Note|Notes|Translation [Nn]ote|TL [Nn]ote)s?\s*[:：].*?\)\s*$'
    r')',
    re.DOTALL | re.IGNORECASE,
)

_PLACEHOLDER_RE = re.compile(r'«CODE\d+»')

_CODE_NOTICE = ("IMPORTANT: The text contains code markers like «CODE1», «CODE2», etc. "
                "These are internal engine formatting tags. "
                "You MUST output them exactly as-is.")
_CONTEXT_HEADER = "Context (surrounding lines for reference, do NOT translate this):"

# A JSON object, optionally one level nested, somewhere inside a reply.
_EMBEDDED_OBJECT_RE = re.compile(r'\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}', re.DOTALL)
_FENCE_RE = re.compile(r'```(?:json)?')

SYSTEM_PROMPT = """You are a professional {source} to {target} translator specializing in video game and visual novel scripts.

Rules:
- Translate the text faithfully and completely into natural {target} suitable for a game.
- The text may contain opaque code markers like «CODE1», «CODE2», etc. These are internal engine tags. Output them EXACTLY as-is, never remove, translate, rewrite, or replace them.
- Keep the same line break structure as the original.
- Output ONLY the translated text. No explanations, no translator notes, no commentary.
- If the text is already in {target} or is a proper noun, keep it as-is.
- Keep the tone and register of the source line.
- Preserve Japanese honorifics as-is: -san, -kun, -chan, -sama, -sensei, -senpai."""

BATCH_RULES = ("CRITICAL: You must respond with a valid JSON object. "
               "Use the exact same keys from the input. "
               "Do not add any text outside the JSON.")


def build_system_prompt(source_language: str = "Japanese",
                        target_language: str = "English") -> str:
    """Build the translation system prompt for a language pair."""
    return SYSTEM_PROMPT.format(source=source_language, target=target_language)


def protect_markup(text: str) -> tuple:
    """Swap control codes and markup for numbered «CODEn» placeholders.

    Returns ``(protected_text, placeholders)`` where *placeholders* maps each
    placeholder back to the markup it stands for.
    """
    placeholders = {}

    def _swap(m):
        marker = f"«CODE{len(placeholders) + 1}»"
        placeholders[marker] = m.group(0)
        return marker

    return PROTECTED_RE.sub(_swap, text), placeholders


def restore_markup(text: str, placeholders: dict) -> str:
    for marker, markup in placeholders.items():
        text = text.replace(marker, markup)
    return text


def clean_reply(text: str) -> str:
    """Drop <think> blocks and appended translator notes from a reply."""
    text = _THINK_RE.sub('', text).strip()
    return _NOTE_STRIP_RE.sub('', text).rstrip()


def _reply_content(data: dict) -> str:
    return data.get("message", {}).get("content", "").strip()


def _load_json_object(raw: str):
    """Try the reply as-is, then without markdown fences, then the first
    embedded object.  Returns None when nothing decodes."""
    candidates = [raw, _FENCE_RE.sub('', raw).strip()]
    m = _EMBEDDED_OBJECT_RE.search(raw)
    if m:
        candidates.append(m.group(0))
    for candidate in candidates:
        try:
            return json.loads(candidate)
        except (json.JSONDecodeError, TypeError):
            continue
    return None


class OllamaClient:
    """Client for Ollama's local LLM REST API."""

    def __init__(self, base_url: str = "http://localhost:11434", model: str = "qwen3:14b"):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.source_language = "Japanese"
        self.target_language = "English"

    @property
    def system_prompt(self) -> str:
        return build_system_prompt(self.source_language, self.target_language)

    def _chat(self, messages: list, timeout: int = 120, **extra) -> str:
        """POST a non-streaming chat request and return the reply text.

        *extra* is merged into the payload (``options``, ``format``).
        Transport failures surface as ConnectionError.
        """
        payload = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "think": False,   # Qwen3 chain-of-thought off
        }
        payload.update(extra)
        try:
            r = requests.post(f"{self.base_url}/api/chat", json=payload, timeout=timeout)
            r.raise_for_status()
            return _reply_content(r.json())
        except requests.RequestException as e:
            raise ConnectionError(f"Ollama API error: {e}") from e

    def _tags(self, timeout: int):
        r = requests.get(f"{self.base_url}/api/tags", timeout=timeout)
        r.raise_for_status()
        return r.json()

    def is_available(self) -> bool:
        """Check if Ollama server is reachable."""
        try:
            self._tags(timeout=5)
        except (requests.RequestException, ValueError, OSError):
            return False
        return True

    def list_models(self) -> list:
        """Names of the models installed on the server, or [] when unreachable."""
        try:
            data = self._tags(timeout=10)
            return [m["name"] for m in data.get("models", [])]
        except (requests.RequestException, KeyError, ValueError, OSError):
            return []

    def _left_untranslated(self, text: str) -> bool:
        """True when a Japanese source still shows Japanese in the output."""
        if self.source_language != "Japanese" or self.target_language == "Japanese":
            return False
        return bool(JAPANESE_RE.search(_PLACEHOLDER_RE.sub('', text)))

    @staticmethod
    def _prompt(body: str, context: str, has_codes: bool) -> str:
        parts = []
        if context:
            parts.append(f"{_CONTEXT_HEADER}\n{context}")
        if has_codes:
            parts.append(_CODE_NOTICE)
        parts.append(body)
        return "\n\n".join(parts)

    def translate(self, text: str, context: str = "") -> str:
        """Translate one text unit with the configured model.

        Args:
            text: The text to translate.
            context: Optional surrounding lines for better coherence.

        Returns:
            The translation, with control codes restored.

        Raises:
            ConnectionError: the request failed or the model returned nothing.
        """
        if not text or not text.strip():
            return ""

        protected, placeholders = protect_markup(text)
        conversation = [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": self._prompt(
                f"Translate this:\n{protected}", context, bool(placeholders))},
        ]
        options = {"temperature": 0, "seed": 42, "num_predict": 1024, "num_ctx": 4096}

        reply = clean_reply(self._chat(conversation, options=options))
        if not reply:
            # Blank output would otherwise be stored as a finished translation.
            raise ConnectionError("Ollama returned empty translation")

        if self._left_untranslated(reply):
            log.info("Translation still contains Japanese — asking for a second pass")
            conversation += [
                {"role": "assistant", "content": reply},
                {"role": "user", "content":
                    "Your translation still contains Japanese characters. "
                    f"Translate ALL of it to {self.target_language}.\n\n"
                    f"Fix this translation:\n{reply}"},
            ]
            try:
                second = clean_reply(self._chat(conversation, options=options))
            except ConnectionError as exc:
                log.debug("Second pass failed, keeping first reply: %s", exc)
            else:
                if second:
                    reply = second

        return restore_markup(reply, placeholders)

    @staticmethod
    def _parse_batch_response(raw: str, expected_keys: list[str]) -> dict[str, str]:
        """Pick the expected keys out of a batch reply.

        Accepts bare JSON, fenced JSON and JSON embedded in prose.  Raises
        ValueError when no object decodes or none of *expected_keys* has a
        non-blank value.
        """
        obj = _load_json_object(raw)
        if not isinstance(obj, dict):
            raise ValueError(f"Could not parse JSON from LLM response: {raw[:200]}")

        found = {}
        for key in expected_keys:
            value = obj.get(key)
            if value is not None and str(value).strip():
                found[key] = str(value).strip()
        if not found:
            raise ValueError(
                f"No expected keys found in response. Expected {expected_keys}, "
                f"got {list(obj)}")
        return found

    def translate_batch(self, entries: list[tuple[str, str, str]]) -> dict[str, str]:
        """Translate several text units in one JSON-mode request.

        Args:
            entries: List of (key, original_text, context) tuples.  Only the
                first entry's context is sent.

        Returns:
            Dict mapping key -> translated text (with codes restored).  Keys
            the model dropped are absent.

        Raises:
            ConnectionError: the request failed or the model returned nothing.
            ValueError: the response held no usable JSON.
        """
        if not entries:
            return {}

        placeholders = {}
        request_obj = {}
        for key, original, _context in entries:
            request_obj[key], placeholders[key] = protect_markup(original)

        body = (
            "Translate the following JSON. Each value is a separate line of text to translate.\n"
            "Respond with ONLY a JSON object using the EXACT same keys, "
            "where each value is the translated text:\n\n"
            + json.dumps(request_obj, ensure_ascii=False, indent=2)
        )
        size = len(entries)
        raw = _THINK_RE.sub('', self._chat(
            [
                {"role": "system", "content": f"{self.system_prompt}\n\n{BATCH_RULES}"},
                {"role": "user", "content": self._prompt(
                    body, entries[0][2], any(placeholders.values()))},
            ],
            timeout=120 + 30 * size,
            format="json",
            options={
                "temperature": 0,
                "seed": 42,
                "num_predict": min(1024 * size, 8192),
                "num_ctx": max(4096, 2048 * size),
            },
        )).strip()
        if not raw:
            raise ConnectionError("Ollama returned empty response for batch")

        parsed = self._parse_batch_response(raw, [key for key, *_ in entries])
        return {key: restore_markup(clean_reply(text), placeholders[key])
                for key, text in parsed.items()}

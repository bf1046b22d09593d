"""Heuristic conversation summaries.

Two tiers, both pure functions of a conversation's messages:

- Tier 1 (``generate_chat_summary``) runs on every scan. It extracts short
  "accomplishment" phrases following action verbs, message by message, so
  each bullet can link back to the message it came from.
- Tier 2 (``analyze_chat``) runs only for index entries that need analysis.
  It scans a flattened transcript and produces a one-line summary, a short
  paragraph and up to eight bullets.
"""

import re
from collections.abc import Iterable

from chatlog_viewer.config import SummarizerConfig
from chatlog_viewer.models import (
    ROLE_ASSISTANT,
    ROLE_USER,
    AccomplishmentAnchor,
    ChatSummary,
    EnhancedSummary,
    NormalizedMessage,
)
from chatlog_viewer.processor.parsers.blocks import TextBlock

EMPTY_CONVERSATION = "Empty conversation"

DEFAULT_SETTINGS = SummarizerConfig()

# A phrase runs until sentence-ending punctuation followed by whitespace or
# end of text, so "app.js" stays in one piece.
_PHRASE_BODY = r"((?:[^.!?]|[.!?](?=\S))+)"
_LINE_PHRASE_BODY = r"((?:[^.!?\n]|[.!?](?=\S))+)"

_NON_ALNUM = re.compile(r"[^a-z0-9\s]", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def _verb_pattern(verbs: Iterable[str], body: str) -> re.Pattern[str]:
    alternation = "|".join(re.escape(verb) for verb in verbs)
    return re.compile(rf"\b(?:{alternation})\s+{body}")


def _file_pattern(extensions: Iterable[str]) -> re.Pattern[str]:
    alternation = "|".join(re.escape(ext) for ext in extensions)
    return re.compile(rf"\b[\w-]+\.(?:{alternation})\b")


def clean_phrase(phrase: str) -> str:
    """Strip non-alphanumeric characters and collapse whitespace."""
    return _WHITESPACE.sub(" ", _NON_ALNUM.sub("", phrase)).strip()


def extract_file_mentions(text: str, extensions: Iterable[str], limit: int) -> list[str]:
    """Return up to ``limit`` distinct filename-like tokens in order of appearance."""
    files: list[str] = []
    for match in _file_pattern(extensions).finditer(text):
        name = match.group(0)
        if name not in files:
            files.append(name)
            if len(files) >= limit:
                break
    return files


def _is_duplicate(cleaned: str, kept: list[tuple[str, AccomplishmentAnchor]]) -> bool:
    prefix = cleaned[:20]
    return any(prefix in phrase for phrase, _ in kept)


def generate_chat_summary(
    messages: list[NormalizedMessage],
    settings: SummarizerConfig | None = None,
) -> ChatSummary:
    """Build the Tier 1 bullet summary for a conversation.

    Every message is scanned against each action verb in order. The text
    after the verb, up to the end of its sentence, is kept when its cleaned
    length lies strictly between the configured bounds and its first 20
    characters do not already occur in a kept phrase. When too few phrases
    turn up, file mentions are added as "worked on <file>".

    Args:
        messages: Normalized messages in conversation order
        settings: Summarizer constants (defaults to SummarizerConfig())

    Returns:
        ChatSummary whose bullets link to the originating messages
    """
    settings = settings or DEFAULT_SETTINGS

    user_count = sum(1 for m in messages if m.role == ROLE_USER)
    if user_count == 0:
        return ChatSummary(bullets=[EMPTY_CONVERSATION])

    kept: list[tuple[str, AccomplishmentAnchor]] = []
    lowered = [(m, m.content.lower()) for m in messages]

    for verb in settings.verbs:
        if len(kept) >= settings.max_phrases:
            break
        pattern = _verb_pattern([verb], _PHRASE_BODY)
        for message, text in lowered:
            if len(kept) >= settings.max_phrases:
                break
            for match in pattern.finditer(text):
                cleaned = clean_phrase(match.group(1))
                if not settings.min_phrase_length < len(cleaned) < settings.max_phrase_length:
                    continue
                if _is_duplicate(cleaned, kept):
                    continue
                kept.append(
                    (
                        cleaned,
                        AccomplishmentAnchor(
                            text=f"{verb} {cleaned}",
                            message_index=message.sequence_index,
                        ),
                    )
                )
                if len(kept) >= settings.max_phrases:
                    break

    anchors = [anchor for _, anchor in kept]

    if len(anchors) < settings.file_fallback_threshold:
        all_text = " ".join(text for _, text in lowered)
        for file_name in extract_file_mentions(
            all_text, settings.file_extensions, settings.max_file_mentions
        ):
            source = next((m for m, text in lowered if file_name in text), None)
            if source is not None:
                anchors.append(
                    AccomplishmentAnchor(
                        text=f"worked on {file_name}",
                        message_index=source.sequence_index,
                    )
                )

    if anchors:
        selected = anchors[: settings.max_bullets]
        return ChatSummary(bullets=[a.text for a in selected], anchors=selected)

    return ChatSummary(bullets=[f"{user_count} message conversation"])


def dialogue_turns(messages: list[NormalizedMessage]) -> list[tuple[str, str]]:
    """Return the (role, text) turns that Tier 2 analysis reads.

    Assistant turns keep only their text blocks, so tool calls and the file
    bodies they carry never count as accomplishments. Assistant turns with
    no text at all are dropped.
    """
    turns: list[tuple[str, str]] = []
    for message in messages:
        if message.role == ROLE_USER:
            turns.append((message.role, message.content))
        elif message.role == ROLE_ASSISTANT:
            if message.blocks:
                text = "".join(
                    f"{block.text}\n" for block in message.blocks if isinstance(block, TextBlock)
                ).strip()
            else:
                text = message.content.strip()
            if text:
                turns.append((message.role, text))
    return turns


def _format_transcript(turns: list[tuple[str, str]]) -> str:
    return "".join(f"{role.upper()}: {text}\n\n" for role, text in turns)


def build_transcript(messages: list[NormalizedMessage]) -> str:
    """Flatten user and assistant messages into a role-tagged transcript."""
    return _format_transcript(dialogue_turns(messages))


def analyze_chat(
    messages: list[NormalizedMessage],
    first_message: str | None = None,
    settings: SummarizerConfig | None = None,
) -> EnhancedSummary:
    """Build the Tier 2 summary for a conversation.

    Args:
        messages: Normalized messages of the full conversation
        first_message: Opening text used when nothing else stands out
        settings: Summarizer constants (defaults to SummarizerConfig())

    Returns:
        EnhancedSummary with one-line, paragraph and bullet summaries
    """
    settings = settings or DEFAULT_SETTINGS

    turns = dialogue_turns(messages)
    count = len(turns)
    full_text = _format_transcript(turns).lower()

    accomplishments: list[str] = []
    for match in _verb_pattern(settings.tier2_verbs, _LINE_PHRASE_BODY).finditer(full_text):
        phrase = match.group(1).strip()
        if settings.min_phrase_length < len(phrase) < settings.max_phrase_length:
            accomplishments.append(phrase)

    files = extract_file_mentions(
        full_text, settings.tier2_file_extensions, settings.tier2_max_files
    )

    if accomplishments:
        one_line = f"Discussion about {accomplishments[0]}"
        if files:
            one_line += f" involving {files[0]}"
        one_line += "."
    elif files:
        one_line = f"Working with {', '.join(files)} files."
    else:
        topic = first_message[:50] if first_message else "various topics"
        one_line = f"{count}-message conversation about {topic}."

    if accomplishments:
        sentences = [f"This conversation focused on {accomplishments[0]}."]
        if files:
            sentences.append(f"Key files involved include {', '.join(files)}.")
        if len(accomplishments) > 1:
            sentences.append(f"Additional work included {' and '.join(accomplishments[1:3])}.")
        sentences.append(
            f"The discussion covered {count} messages with "
            f"{len(accomplishments)} main accomplishments."
        )
    elif files:
        sentences = [
            f"This conversation involved working with {', '.join(files)}.",
            f"The discussion spanned {count} messages covering file modifications and updates.",
        ]
    else:
        sentences = [
            f'A {count}-message conversation that began with "{(first_message or "")[:100]}...".',
            "The discussion covered various topics and technical implementations.",
        ]

    bullets = [
        f"Implemented {phrase}"
        for phrase in accomplishments[: settings.tier2_max_accomplishment_bullets]
    ]
    bullets.extend(f"Worked with {file_name}" for file_name in files)
    bullets.append(f"{count} total messages exchanged")

    return EnhancedSummary(
        one_line=one_line,
        paragraph=" ".join(sentences),
        bullets=bullets[: settings.tier2_max_bullets],
    )

"""Rewrite commands and resolution of clipboard text into (text, instructions)."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from rapidfuzz import process

logger = logging.getLogger(__name__)

DEFAULT_SEPARATOR = "///"

# Limits enforced on user-edited commands
MAX_NAME_LENGTH = 32
MAX_COMMAND_WORD_LENGTH = 32
MAX_INSTRUCTIONS_LENGTH = 2048

_SUGGESTION_CUTOFF = 60  # rapidfuzz score (0-100) for "did you mean" hints

# Characters trimmed from clipboard content. Includes the byte-order mark, excludes
# the ASCII separators \x1c-\x1f and NEL that str.strip() would also remove.
_WHITESPACE = (
    "\t\n\v\f\r \u00a0\u1680\u2000\u2001\u2002\u2003\u2004\u2005\u2006"
    "\u2007\u2008\u2009\u200a\u2028\u2029\u202f\u205f\u3000\ufeff"
)


@dataclass(frozen=True)
class Command:
    """A named rewrite: selected by its command word, applied via its instructions."""

    name: str
    command_word: str
    instructions: str


@dataclass(frozen=True)
class Resolution:
    text: str  # Portion of the clipboard to transform
    instructions: str  # Instructions handed to the model


def is_blank(content: str) -> bool:
    return not content.strip(_WHITESPACE)

def find_command(catalog: Sequence[Command], command_word: str) -> Command | None:
    """Exact, case-sensitive lookup. First match wins on duplicates."""
    return next((c for c in catalog if c.command_word == command_word), None)


def resolve(
    content: str,
    catalog: Sequence[Command],
    base_command: str,
    separator: str = DEFAULT_SEPARATOR,
) -> Resolution | None:
    """Work out which instructions apply to which part of the clipboard content.

    ``"text///word"`` uses the command whose command word is ``word``, or
    ``word`` itself as free-form instructions when no command matches.
    Without a separator (or with nothing after it) the base command applies.

    Returns None when the content is blank or no instructions can be found.
    Never raises.
    """
    if is_blank(content):
        return None

    # An empty separator never splits, so the whole content is the text
    if separator:
        text, _, adhoc = content.partition(separator)
    else:
        text, adhoc = content, ""
    adhoc = adhoc.strip(_WHITESPACE)

    instructions: str | None = None
    if adhoc:
        command = find_command(catalog, adhoc)
        instructions = command.instructions if command is not None else adhoc

    if instructions is None:
        command = find_command(catalog, base_command)
        if command is not None:
            instructions = command.instructions

    if not instructions:
        return None

    return Resolution(text=text, instructions=instructions)


def suggest_command_word(catalog: Sequence[Command], command_word: str) -> str | None:
    """Return the closest configured command word, for misconfiguration hints."""
    choices = [c.command_word for c in catalog]
    if not choices or not command_word:
        return None
    match = process.extractOne(command_word, choices, score_cutoff=_SUGGESTION_CUTOFF)
    return match[0] if match else None


def validate_settings(catalog: Sequence[Command], base_command: str, separator: str) -> list[str]:
    """Check a catalog the way the settings editor would. Returns a list of problems."""
    problems: list[str] = []

    seen: dict[str, str] = {}  # normalized command word -> name of first command using it
    for index, command in enumerate(catalog, start=1):
        label = command.name.strip() or f"#{index}"

        for field_name, value, limit in (
            ("name", command.name, MAX_NAME_LENGTH),
            ("command_word", command.command_word, MAX_COMMAND_WORD_LENGTH),
            ("instructions", command.instructions, MAX_INSTRUCTIONS_LENGTH),
        ):
            if not value.strip():
                problems.append(f"Rewrite {label}: {field_name} is empty")
            elif len(value) > limit:
                problems.append(f"Rewrite {label}: {field_name} is longer than {limit} characters")

        key = command.command_word.strip().lower()
        if not key:
            continue
        if key in seen:
            problems.append(
                f"Rewrite {label}: command word '{command.command_word}' is already used by '{seen[key]}'"
            )
        else:
            seen[key] = label

    if not separator:
        problems.append("Command separator is empty")

    if find_command(catalog, base_command) is None:
        hint = suggest_command_word(catalog, base_command)
        message = f"Default command '{base_command}' does not match any rewrite"
        if hint is not None:
            message += f" (did you mean '{hint}'?)"
        problems.append(message)

    return problems

from __future__ import annotations

from dataclasses import dataclass
from typing import List

import regex


# Base pictograph, optional variation selector / skin-tone modifiers, then any
# number of ZWJ-joined pictographs with their own modifiers.
_PICTOGRAPH = r"[\p{Emoji_Presentation}\p{Extended_Pictographic}][\uFE0F\U0001F3FB-\U0001F3FF]*"
EMOJI_PATTERN = regex.compile(rf"{_PICTOGRAPH}(?:\u200d{_PICTOGRAPH})*")


@dataclass(frozen=True)
class ExtractedEmoji:
	character: str
	index: int


def contains_emoji(text: str) -> bool:
	return EMOJI_PATTERN.search(text) is not None


def extract_emojis_with_positions(text: str) -> List[ExtractedEmoji]:
	return [ExtractedEmoji(character=match.group(0), index=match.start()) for match in EMOJI_PATTERN.finditer(text)]


def extract_emojis(text: str) -> List[str]:
	"""Distinct emoji in order of first appearance."""
	seen: set[str] = set()
	unique: List[str] = []
	for item in extract_emojis_with_positions(text):
		if item.character in seen:
			continue
		seen.add(item.character)
		unique.append(item.character)
	return unique

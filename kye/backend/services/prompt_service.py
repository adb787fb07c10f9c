from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from kye.backend.schemas import InterpretRequest


INTERPRETATION_SYSTEM_PROMPT = """
You are an expert emoji interpreter specializing in the nuanced, contextual meanings of emojis in modern digital communication.

Analyze the message you are given and:
1. Identify each distinct emoji and explain what it means in this message, considering both its literal meaning and how it is actually used.
2. Write a plain-language interpretation of the whole message.
3. Score sarcasmProbability (0-100): how likely the message is sarcastic.
4. Score passiveAggressionProbability (0-100): how likely the message carries passive-aggressive intent.
5. Classify overallTone as one of: positive, neutral, negative.
6. Score confidence (0-100) in your interpretation.
7. List any red flags (manipulation, guilt-tripping, gaslighting, boundary violations, love bombing, mixed signals), each with a type, a description and a severity of low, medium or high.

Platform conventions and the relationship between sender and reader change what an emoji means; account for both.
Respond with a single JSON object with the keys: emojis, interpretation, metrics, redFlags.
Be honest and direct. If a message seems concerning, say so clearly.
""".strip()

PLATFORM_LABELS: Dict[str, str] = {
	"IMESSAGE": "Apple iMessage",
	"INSTAGRAM": "Instagram DMs",
	"TIKTOK": "TikTok comments/messages",
	"WHATSAPP": "WhatsApp",
	"SLACK": "Slack workplace messaging",
	"DISCORD": "Discord",
	"TWITTER": "Twitter/X DMs",
	"OTHER": "Other platform",
}

CONTEXT_LABELS: Dict[str, str] = {
	"ROMANTIC_PARTNER": "Someone you are dating or in a relationship with",
	"FRIEND": "A friend or close acquaintance",
	"FAMILY": "A family member",
	"COWORKER": "A colleague or professional contact",
	"ACQUAINTANCE": "Someone you know casually",
	"STRANGER": "Someone you do not know personally",
}


@dataclass(frozen=True)
class PromptPair:
	system: str
	user: str


def format_platform(platform: str) -> str:
	return PLATFORM_LABELS.get(platform, "")


def format_context(context: str) -> str:
	return CONTEXT_LABELS.get(context, "")


def build_user_prompt(request: InterpretRequest) -> str:
	platform_label = format_platform(request.platform)
	context_label = format_context(request.context)
	platform_line = f"Platform: {request.platform}"
	if platform_label:
		platform_line += f" ({platform_label})"
	context_line = f"Relationship Context: {request.context}"
	if context_label:
		context_line += f" - {context_label}"
	return "\n\n".join(
		[
			"Analyze the following message and provide your interpretation in JSON format.",
			f'Message: "{request.message}"',
			platform_line,
			context_line,
			"\n".join(
				[
					"Provide your analysis as a JSON object with these fields:",
					"- emojis: Array of {character, meaning} for each emoji detected",
					"- interpretation: Overall interpretation of the message",
					"- metrics: {sarcasmProbability, passiveAggressionProbability, overallTone, confidence}",
					"- redFlags: Array of {type, description, severity} for any concerns",
				]
			),
		]
	)


def build_prompts(request: InterpretRequest) -> PromptPair:
	return PromptPair(system=INTERPRETATION_SYSTEM_PROMPT, user=build_user_prompt(request))

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from typing import List

from kye.backend.config import ProviderConfig
from kye.backend.response import now_iso
from kye.backend.schemas import (
	DetectedEmoji,
	InterpretationMetrics,
	InterpretationResponse,
	InterpretationResult,
	InterpretRequest,
)
from kye.backend.services import provider_service
from kye.backend.services.prompt_service import build_prompts
from kye.backend.validators import extract_emojis


logger = logging.getLogger(__name__)

PLACEHOLDER_MEANING = "Interpretation pending - AI service not configured"
PLACEHOLDER_INTERPRETATION = (
	"This is a placeholder interpretation. The AI interpretation service is not yet configured. "
	"When enabled, this will provide detailed analysis of emoji meanings based on context, platform, and relationship."
)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def generate_interpretation_id() -> str:
	suffix = "".join(secrets.choice(_BASE36) for _ in range(7))
	return f"int_{int(time.time() * 1000)}_{suffix}"


def placeholder_result(request: InterpretRequest) -> InterpretationResult:
	return InterpretationResult(
		id=generate_interpretation_id(),
		message=request.message,
		emojis=[DetectedEmoji(character=emoji, meaning=PLACEHOLDER_MEANING) for emoji in extract_emojis(request.message)],
		interpretation=PLACEHOLDER_INTERPRETATION,
		metrics=InterpretationMetrics(
			sarcasm_probability=0,
			passive_aggression_probability=0,
			overall_tone="neutral",
			confidence=0,
		),
		red_flags=[],
		timestamp=now_iso(),
	)


def _emojis_with_fallback(request: InterpretRequest, response: InterpretationResponse) -> List[DetectedEmoji]:
	if response.emojis:
		return list(response.emojis)
	# The model occasionally omits the list; keep the detected emoji visible.
	return [DetectedEmoji(character=emoji, meaning="") for emoji in extract_emojis(request.message)]


def build_interpretation_result(request: InterpretRequest, response: InterpretationResponse) -> InterpretationResult:
	return InterpretationResult(
		id=generate_interpretation_id(),
		message=request.message,
		emojis=_emojis_with_fallback(request, response),
		interpretation=response.interpretation,
		metrics=response.metrics,
		red_flags=list(response.red_flags),
		timestamp=now_iso(),
	)


async def interpret(
	request: InterpretRequest,
	config: ProviderConfig,
	*,
	sleep=asyncio.sleep,
) -> InterpretationResult:
	"""Non-streaming interpretation.

	When the pipeline is not live the caller gets a clearly labelled
	placeholder instead of an error.
	"""
	if not config.is_live:
		logger.info("interpreter not live; returning placeholder result")
		return placeholder_result(request)
	prompts = build_prompts(request)
	response = await provider_service.complete_interpretation(prompts, config, sleep=sleep)
	return build_interpretation_result(request, response)

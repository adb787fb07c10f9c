from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


Platform = Literal[
	"IMESSAGE",
	"INSTAGRAM",
	"TIKTOK",
	"WHATSAPP",
	"SLACK",
	"DISCORD",
	"TWITTER",
	"OTHER",
]
RelationshipContext = Literal[
	"ROMANTIC_PARTNER",
	"FRIEND",
	"FAMILY",
	"COWORKER",
	"ACQUAINTANCE",
	"STRANGER",
]
OverallTone = Literal["positive", "neutral", "negative"]
Severity = Literal["low", "medium", "high"]


class _WireModel(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class InterpretRequest(_WireModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)

	message: str
	platform: Platform
	context: RelationshipContext


class DetectedEmoji(_WireModel):
	character: str = Field(..., description="The emoji character.")
	meaning: str = Field(..., description="What this emoji means in the given context.")
	slug: Optional[str] = Field(default=None, description="Slug of the emoji detail page.")


class InterpretationMetrics(_WireModel):
	sarcasm_probability: float = Field(..., ge=0, le=100)
	passive_aggression_probability: float = Field(..., ge=0, le=100)
	overall_tone: OverallTone
	confidence: float = Field(..., ge=0, le=100)


class RedFlag(_WireModel):
	type: str
	description: str
	severity: Severity


class InterpretationResponse(_WireModel):
	emojis: List[DetectedEmoji] = Field(default_factory=list)
	interpretation: str
	metrics: InterpretationMetrics
	red_flags: List[RedFlag] = Field(default_factory=list)


class InterpretationResult(_WireModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True)

	id: str
	message: str
	emojis: List[DetectedEmoji] = Field(default_factory=list)
	interpretation: str
	metrics: InterpretationMetrics
	red_flags: List[RedFlag] = Field(default_factory=list)
	timestamp: str


class InterpretErrorResponse(_WireModel):
	error: str
	status: int
	field_errors: Optional[Dict[str, List[str]]] = None
	request_id: Optional[str] = None


class ApiEnvelope(BaseModel):
	model_config = ConfigDict(extra="allow")

	ok: bool
	generated_at: str
	request_id: Optional[str] = None
	data: Optional[Dict[str, Any]] = None


class HealthData(BaseModel):
	model_config = ConfigDict(extra="forbid")

	app: str
	version: str
	interpreter_live: bool
	interpreter_enabled: bool
	provider_configured: bool
	model: str
	warnings: List[str] = Field(default_factory=list)

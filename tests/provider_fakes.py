from types import SimpleNamespace


VALID_REPLY = {
	"emojis": [{"character": "🙃", "meaning": "Playful irony"}],
	"interpretation": "They are joking, but only slightly.",
	"metrics": {
		"sarcasmProbability": 70,
		"passiveAggressionProbability": 20,
		"overallTone": "neutral",
		"confidence": 80,
	},
	"redFlags": [],
}


class FakeStatusError(Exception):
	def __init__(self, status_code: int):
		super().__init__(f"status {status_code}")
		self.status_code = status_code


class APITimeoutError(Exception):
	pass


def completion(content):
	return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def stream_chunk(content):
	return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


async def fake_stream(items):
	for item in items:
		if isinstance(item, Exception):
			raise item
		yield item


class FakeCompletions:
	def __init__(self, outcomes):
		self.outcomes = list(outcomes)
		self.calls = []

	async def create(self, **kwargs):
		self.calls.append(kwargs)
		outcome = self.outcomes.pop(0)
		if isinstance(outcome, Exception):
			raise outcome
		return outcome


class FakeClient:
	def __init__(self, outcomes):
		self.chat = SimpleNamespace(completions=FakeCompletions(outcomes))

	@property
	def calls(self):
		return self.chat.completions.calls


class RecordingSleep:
	def __init__(self):
		self.delays = []

	async def __call__(self, delay):
		self.delays.append(delay)



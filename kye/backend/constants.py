APP_NAME = "KnowYourEmoji Interpreter"
APP_VERSION = "1.0.0"
DEFAULT_CORS_ALLOW_ORIGINS = [
	"http://localhost",
	"http://127.0.0.1",
	"http://localhost:3000",
]
DEFAULT_TRUSTED_HOSTS = [
	"127.0.0.1",
	"localhost",
	"testserver",
]

VALID_PLATFORMS = (
	"IMESSAGE",
	"INSTAGRAM",
	"TIKTOK",
	"WHATSAPP",
	"SLACK",
	"DISCORD",
	"TWITTER",
	"OTHER",
)

VALID_CONTEXTS = (
	"ROMANTIC_PARTNER",
	"FRIEND",
	"FAMILY",
	"COWORKER",
	"ACQUAINTANCE",
	"STRANGER",
)

MESSAGE_MIN_CHARS = 10
MESSAGE_MAX_CHARS = 1000

DEFAULT_OPENAI_MODEL = "gpt-4-turbo"
DEFAULT_OPENAI_TIMEOUT_S = 30.0
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000
MAX_ATTEMPTS = 3
RETRY_DELAY_S = 1.0

INTERPRET_PATH = "/api/interpret"
INTERPRET_STREAM_PATH = "/api/interpret/stream"

STREAM_HEADERS = {
	"Cache-Control": "no-cache, no-transform",
	"Connection": "keep-alive",
	"X-Accel-Buffering": "no",
}

RATE_LIMIT_STORAGE_KEY = "kye_rate_limit"
DEFAULT_MAX_USES = 3
SQLITE_BUSY_TIMEOUT_MS = 5000

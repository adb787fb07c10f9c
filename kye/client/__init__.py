from kye.client.errors import InvalidTransition, StreamCancelled, StreamError, StreamReadError, StreamRequestError
from kye.client.quota import RateLimitState, UsageQuotaTracker
from kye.client.session import CancellationToken, SessionStatus, StreamSession
from kye.client.storage import MemoryStorage, SqliteStorage, Storage, StorageError
from kye.client.stream_consumer import StreamingInterpreter

__all__ = [
	"CancellationToken",
	"InvalidTransition",
	"MemoryStorage",
	"RateLimitState",
	"SessionStatus",
	"SqliteStorage",
	"Storage",
	"StorageError",
	"StreamCancelled",
	"StreamError",
	"StreamReadError",
	"StreamRequestError",
	"StreamSession",
	"StreamingInterpreter",
	"UsageQuotaTracker",
]

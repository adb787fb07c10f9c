from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from kye.backend import constants
from kye.client.quota import UsageQuotaTracker
from kye.client.session import SessionStatus
from kye.client.storage import SqliteStorage
from kye.client.stream_consumer import DEFAULT_BASE_URL, StreamingInterpreter


logger = logging.getLogger(__name__)

DEFAULT_QUOTA_FILE = Path("~/.kye/quota.db")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_QUOTA = 2
EXIT_ABORTED = 130


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(
		prog="kye-interpret",
		description="Stream a plain-language interpretation of the emoji in a message.",
	)
	parser.add_argument("message", nargs="?", help="Message to interpret (10-1000 characters, at least one emoji).")
	parser.add_argument("--platform", choices=constants.VALID_PLATFORMS, default="OTHER")
	parser.add_argument("--context", choices=constants.VALID_CONTEXTS, default="FRIEND")
	parser.add_argument("--url", default=DEFAULT_BASE_URL, help="Base URL of the interpreter service.")
	parser.add_argument("--quota-file", type=Path, default=DEFAULT_QUOTA_FILE, help="Where the daily quota is stored.")
	parser.add_argument("--max-uses", type=int, default=constants.DEFAULT_MAX_USES)
	parser.add_argument("--timeout", type=float, default=None, help="Stop the stream after this many seconds.")
	parser.add_argument("--retries", type=int, default=1, help="Extra attempts offered after a failed stream.")
	parser.add_argument("--reset-quota", action="store_true", help="Clear the stored quota and exit.")
	parser.add_argument("--verbose", action="store_true")
	return parser


class ProgressPrinter:
	"""Writes only the new suffix of the accumulated text."""

	def __init__(self, stream=None) -> None:
		self.stream = stream or sys.stdout
		self.printed = 0

	def restart(self) -> None:
		self.printed = 0

	def __call__(self, text: str) -> None:
		self.stream.write(text[self.printed :])
		self.stream.flush()
		self.printed = len(text)


def _install_interrupt(interpreter: StreamingInterpreter) -> bool:
	"""Route Ctrl-C to interpreter.stop() while the loop runs."""
	loop = asyncio.get_running_loop()
	try:
		loop.add_signal_handler(signal.SIGINT, interpreter.stop)
	except (NotImplementedError, RuntimeError, ValueError):
		logger.debug("SIGINT handler unavailable; Ctrl-C falls back to KeyboardInterrupt")
		return False
	return True


async def run(args: argparse.Namespace, quota: UsageQuotaTracker, interpreter: Optional[StreamingInterpreter] = None) -> int:
	if not quota.can_use():
		reset_at = quota.reset_time()
		when = reset_at.strftime("%Y-%m-%d %H:%M") if reset_at else "later"
		print(f"Daily limit of {quota.max_uses} interpretations reached. Try again after {when}.", file=sys.stderr)
		return EXIT_QUOTA

	printer = ProgressPrinter()
	if interpreter is None:
		interpreter = StreamingInterpreter(args.url, on_text=printer)

	installed = _install_interrupt(interpreter)
	try:
		return await _attempt_all(args, quota, interpreter, printer)
	finally:
		if installed:
			asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)


async def _attempt_all(
	args: argparse.Namespace,
	quota: UsageQuotaTracker,
	interpreter: StreamingInterpreter,
	printer: ProgressPrinter,
) -> int:
	attempts = max(0, args.retries) + 1
	for attempt in range(1, attempts + 1):
		printer.restart()
		session = await interpreter.interpret(
			args.message,
			args.platform,
			args.context,
			timeout_s=args.timeout,
		)
		if session.status is SessionStatus.SUCCESS:
			sys.stdout.write("\n")
			remaining = quota.record_use()
			print(f"{remaining} of {quota.max_uses} interpretations left today.", file=sys.stderr)
			return EXIT_OK
		if session.status is SessionStatus.ABORTED:
			print("\nStopped.", file=sys.stderr)
			return EXIT_ABORTED
		message = getattr(session.error, "message", str(session.error))
		print(f"\nInterpretation failed: {message}", file=sys.stderr)
		if getattr(session.error, "status_code", None) == 400:
			break
		if attempt < attempts:
			print(f"Retrying ({attempt}/{attempts - 1})...", file=sys.stderr)
	return EXIT_FAILED


def main(argv: Optional[List[str]] = None) -> int:
	parser = build_parser()
	args = parser.parse_args(argv)
	logging.basicConfig(
		level=logging.DEBUG if args.verbose else logging.WARNING,
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)
	quota = UsageQuotaTracker(SqliteStorage(args.quota_file), max_uses=args.max_uses)
	if args.reset_quota:
		quota.reset()
		print("Quota reset.")
		return EXIT_OK
	if not args.message:
		parser.error("message is required")
	try:
		return asyncio.run(run(args, quota))
	except KeyboardInterrupt:
		print("\nStopped.", file=sys.stderr)
		return EXIT_ABORTED


if __name__ == "__main__":
	raise SystemExit(main())

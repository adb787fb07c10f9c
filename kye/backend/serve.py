from __future__ import annotations

import argparse
import logging
import os
from typing import List, Optional

import uvicorn

from kye.backend import constants


logger = logging.getLogger(__name__)

_WILDCARD_BINDS = {"0.0.0.0", "::"}


def main(argv: Optional[List[str]] = None) -> int:
	parser = argparse.ArgumentParser(description="Run the interpreter API.")
	parser.add_argument("--host", default="127.0.0.1")
	parser.add_argument("--port", type=int, default=8000)
	parser.add_argument(
		"--allow-host",
		action="append",
		default=[],
		help='Host header to accept (repeatable, "*" for any). Overrides KYE_TRUSTED_HOSTS.',
	)
	parser.add_argument("--log-level", default="info")
	args = parser.parse_args(argv)
	logging.basicConfig(
		level=args.log_level.upper(),
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)
	if args.allow_host:
		os.environ["KYE_TRUSTED_HOSTS"] = ",".join(args.allow_host)
	elif args.host in _WILDCARD_BINDS and not os.getenv("KYE_TRUSTED_HOSTS", "").strip():
		logger.warning(
			"bound to %s but only %s are trusted hosts; pass --allow-host for remote clients",
			args.host,
			", ".join(constants.DEFAULT_TRUSTED_HOSTS),
		)
	uvicorn.run("kye.backend.main:app", host=args.host, port=args.port, log_level=args.log_level)
	return 0


if __name__ == "__main__":
	raise SystemExit(main())

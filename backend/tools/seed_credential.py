"""Insert a sample credential into the shared store (for manual testing)."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from collections.abc import Sequence
from datetime import UTC, datetime

from credstore.core.config import get_settings
from credstore.core.identifiers import CredentialFormatError
from credstore.db.storage import CredentialStorage, StorageError
from credstore.modules.issuance.service import CredentialConflictError, IssuanceService


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Issue a sample credential directly into storage.")
    parser.add_argument("credential_id", nargs="?", default="CRED-9123450")
    parser.add_argument(
        "--worker",
        default=os.environ.get("WORKER", "manual-insert"),
        help="Worker identity recorded on the credential.",
    )
    parser.add_argument("--name", default="John Doe")
    parser.add_argument("--role", default="Senior Developer")
    parser.add_argument("--department", default="Engineering")
    return parser.parse_args(argv)


async def _main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    credential = {
        "id": args.credential_id,
        "name": args.name,
        "role": args.role,
        "department": args.department,
        "issueDate": datetime.now(UTC).isoformat(),
    }

    async with CredentialStorage.from_settings(get_settings()) as storage:
        service = IssuanceService(storage, worker_id=args.worker)
        try:
            issued = await service.issue(credential)
        except CredentialConflictError:
            print(json.dumps({"credential_id": args.credential_id, "error": "already issued"}))
            return 1
        except (CredentialFormatError, StorageError) as exc:
            print(json.dumps({"credential_id": args.credential_id, "error": str(exc)}))
            return 1

        summary = {
            "location": storage.location,
            "credential_id": issued.credential_id,
            "worker": issued.worker,
            "timestamp": issued.timestamp,
        }
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(_main()))

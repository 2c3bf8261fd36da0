"""
Process entry points for the issuance and verification services.

The listening socket is bound here, before uvicorn starts, so that a taken
port can fall through to the next one in ``[port, port + attempts)``.
Storage is opened by the application lifespan; if it cannot be, startup is
aborted and ``main`` returns exit status 1.
"""

from __future__ import annotations

import argparse
import errno
import socket
import sys
from collections.abc import Sequence

import uvicorn

from credstore.core.config import ServiceRole, get_settings
from credstore.core.logging import get_logger

logger = get_logger(__name__)


class NoAvailablePortError(RuntimeError):
    """Raised when every port in the fallback range is taken."""


def bind_first_available(host: str, base_port: int, attempts: int) -> socket.socket:
    """
    Bind a listening TCP socket on the first free port starting at ``base_port``.

    Ports in use are skipped with a warning; any other bind error is raised.
    """
    for port in range(base_port, base_port + attempts):
        sock = socket.socket(socket.AF_INET6 if ":" in host else socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError as exc:
            sock.close()
            if exc.errno == errno.EADDRINUSE:
                logger.warning("port_in_use", port=port)
                continue
            raise
        sock.set_inheritable(True)
        return sock
    raise NoAvailablePortError(
        f"No available ports found in range {base_port}-{base_port + attempts - 1}"
    )


def _parse_args(argv: Sequence[str] | None, role: ServiceRole | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a credential store service.")
    if role is None:
        parser.add_argument(
            "--role",
            choices=[r.value for r in ServiceRole],
            help="Which service to run (defaults to SERVICE_ROLE).",
        )
    parser.add_argument("--host", help="Interface to bind (defaults to HOST).")
    parser.add_argument(
        "--port",
        type=int,
        help="Base port; the next free port is used when it is taken.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None, *, role: ServiceRole | None = None) -> int:
    args = _parse_args(argv, role)
    settings = get_settings()

    if role is None:
        role = ServiceRole(args.role) if args.role else settings.service_role
    host = args.host or settings.host
    base_port = args.port if args.port is not None else settings.resolved_port(role)

    from credstore.main import create_application

    app = create_application(role)

    try:
        sock = bind_first_available(host, base_port, settings.port_fallback_attempts)
    except NoAvailablePortError as exc:
        logger.error("no_available_port", error=str(exc))
        return 1
    except OSError as exc:
        logger.error("server_bind_failed", port=base_port, error=str(exc))
        return 1

    port = sock.getsockname()[1]
    logger.info(
        "service_listening",
        role=role.value,
        worker=app.state.worker_id,
        port=port,
        docs_url=f"http://localhost:{port}/api-docs",
    )

    # log_config=None routes uvicorn's own records through our structlog handler
    config = uvicorn.Config(
        app,
        log_config=None,
        log_level=settings.log_level.lower(),
        access_log=False,
        lifespan="on",
    )
    server = uvicorn.Server(config)
    try:
        server.run(sockets=[sock])
    except SystemExit as exc:
        # uvicorn exits the process itself when the lifespan fails to start
        logger.error("startup_failed", role=role.value, uvicorn_exit_code=exc.code)
        return 1
    finally:
        sock.close()
    return 0


def run_issuance() -> None:
    sys.exit(main(role=ServiceRole.ISSUANCE))


def run_verification() -> None:
    sys.exit(main(role=ServiceRole.VERIFICATION))


if __name__ == "__main__":
    sys.exit(main())

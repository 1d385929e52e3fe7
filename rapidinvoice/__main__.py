"""Entry point for python -m rapidinvoice."""
from __future__ import annotations

import logging


def main() -> None:
    """Forward to rapidinvoice.cli main entry point."""
    # Import here so configure_root runs before module loggers emit anything
    from rapidinvoice.app import build_server, run_sse, run_stdio
    from rapidinvoice.backends.invoices_storage import create_store
    from rapidinvoice.cli import build_parser, run
    from rapidinvoice.context import ServerContext
    from rapidinvoice.utils.config import AUDIT_LOG_PATH, CREATE_SCHEMA
    from rapidinvoice.utils.logging import configure_root

    configure_root()
    logger = logging.getLogger("rapidinvoice.cli")

    def _context_factory(api_key: str, database_url: str) -> ServerContext:
        return ServerContext(
            api_key=api_key,
            store=create_store(database_url, create_schema=CREATE_SCHEMA),
            audit_log_path=AUDIT_LOG_PATH,
        )

    def _start_sse(context: ServerContext, host: str, port: int) -> None:
        run_sse(build_server(context), host, port)

    def _run_stdio(context: ServerContext) -> None:
        run_stdio(build_server(context))

    parser = build_parser()
    args = parser.parse_args()

    run(
        args,
        logger=logger,
        context_factory=_context_factory,
        start_sse=_start_sse,
        run_stdio=_run_stdio,
    )


if __name__ == "__main__":
    main()

"""Application context for tool handlers.

Single object passed to all tool handlers with access to the scanner, the
query service and the configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from jarplane.config.models import JarPlaneConfig
    from jarplane.index.decoder import MemberDecoder
    from jarplane.index.queries import QueryService
    from jarplane.index.scanner import ArchiveScanner

log = structlog.get_logger(__name__)


@dataclass
class AppContext:
    """Context object passed to all tool handlers.

    Owns the two store handles: the scanner's writable one and the query
    service's read-only one.
    """

    config: JarPlaneConfig
    scanner: ArchiveScanner
    queries: QueryService

    @classmethod
    def create(
        cls,
        config: JarPlaneConfig,
        *,
        decoder: MemberDecoder | None = None,
    ) -> AppContext:
        """Build and open both components.

        The writable handle opens first so the schema exists before the
        read-only handle connects.
        """
        from jarplane.index.queries import QueryService
        from jarplane.index.scanner import ArchiveScanner

        scanner = ArchiveScanner.from_config(config, decoder=decoder)
        scanner.open()
        queries = QueryService.from_config(config)
        try:
            queries.open()
        except Exception:
            scanner.close()
            raise

        log.info(
            "context_opened",
            repository=str(config.repository_path),
            store=str(config.store_path),
        )
        return cls(config=config, scanner=scanner, queries=queries)

    def close(self) -> None:
        """Close both store handles. Safe to call more than once."""
        try:
            self.scanner.close()
        finally:
            self.queries.close()
        log.info("context_closed")

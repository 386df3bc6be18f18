"""
application.services.transfer - Tabular export/import through the repositories.

Export reads the repositories' current collections. Import parses a text
blob, submits every good row as a new document through the repository's
optimistic add, counts parse and write failures together, and finally
forces a fresh snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from pathlib import Path

from domain.exceptions import ExportEmptyError, ImportFormatError, NotSubscribedError
from application.codec.menu import export_menu, parse_menu
from application.codec.orders import export_orders, parse_orders
from application.dto import ExportFile, ImportResult
from application.repositories.menu import MenuRepository
from application.repositories.orders import OrderRepository
from application.repositories.synced import SyncedRepository

logger = logging.getLogger(__name__)


class TransferService:
    """Moves orders and menu items in and out of tab-separated text."""

    def __init__(self, orders: OrderRepository, menu: MenuRepository):
        self._orders = orders
        self._menu = menu

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_orders(self) -> str:
        return export_orders(self._orders.items)

    def export_menu(self) -> str:
        return export_menu(self._menu.items)

    @staticmethod
    def write_export(text: str, kind: str, directory: Path) -> ExportFile:
        """Write an export as UTF-8 `ordertaker_<kind>_<timestamp>.tsv`.

        Raises ExportEmptyError when there is nothing beyond the header.
        """
        rows = len([line for line in text.split("\n") if line]) - 1
        if rows <= 0:
            raise ExportEmptyError(
                "No data to export. Add some orders or menu items first."
            )
        directory.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        path = directory / f"ordertaker_{kind}_{stamp}.tsv"
        path.write_text(text, encoding="utf-8")
        logger.info("Exported %d %s rows to %s", rows, kind, path)
        return ExportFile(path=path, rows=rows)

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    @staticmethod
    def read_import_file(path: Path) -> str:
        try:
            return path.read_bytes().decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ImportFormatError(f"{path} is not UTF-8 text: {exc}") from exc

    async def import_orders(self, text: str) -> ImportResult:
        parsed = parse_orders(text)
        result = await self._submit_all(self._orders, parsed.orders, parsed.errors)
        logger.info(
            "Import complete: %d orders imported, %d errors",
            result.imported, result.errors,
        )
        return result

    async def import_menu(self, text: str) -> ImportResult:
        parsed = parse_menu(text)
        result = await self._submit_all(self._menu, parsed.items, parsed.errors)
        logger.info(
            "Import complete: %d menu items imported, %d errors",
            result.imported, result.errors,
        )
        return result

    @staticmethod
    async def _submit_all(
        repository: SyncedRepository, items: list, parse_errors: int,
    ) -> ImportResult:
        if repository.user_id is None:
            raise NotSubscribedError("Sign in before importing.")

        tasks = [repository.add(item) for item in items]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        failed = 0
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                logger.warning("Error importing row: %s", outcome)
                failed += 1

        repository.refresh()
        return ImportResult(
            imported=len(items) - failed,
            errors=parse_errors + failed,
        )

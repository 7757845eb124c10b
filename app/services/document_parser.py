"""
Plain-text extraction for uploaded documents.

The extractor is keyed by file extension.  Only the extensions in
``SUPPORTED_FILE_TYPES`` are accepted; anything else raises
``UnsupportedFileType`` before the file is opened.
"""
from __future__ import annotations

import asyncio
import logging
import os
from typing import List, Optional

import aiofiles
import fitz  # PyMuPDF

from app.config import settings
from app.exceptions import UnsupportedFileType

logger = logging.getLogger(__name__)


class DocumentParser:
    """Extracts plain text from PDF and TXT files."""

    def __init__(self, supported_types: Optional[List[str]] = None) -> None:
        self.supported_types = [
            ext.lower() for ext in (supported_types or settings.SUPPORTED_FILE_TYPES)
        ]

    async def extract_text(self, file_path: str) -> str:
        """
        Extract the text of *file_path*.

        Raises:
            UnsupportedFileType: extension outside the allow-list.
            RuntimeError:        password-protected or unreadable file.
        """
        ext = os.path.splitext(file_path)[1].lower()
        if ext not in self.supported_types:
            raise UnsupportedFileType(ext or file_path)

        if ext == ".pdf":
            return await asyncio.to_thread(self._extract_pdf, file_path)
        if ext == ".txt":
            return await self._extract_txt(file_path)
        raise UnsupportedFileType(ext)

    async def _extract_txt(self, file_path: str) -> str:
        try:
            async with aiofiles.open(file_path, "r", encoding="utf-8", errors="replace") as fh:
                return await fh.read()
        except OSError as exc:
            raise RuntimeError(f"Failed to extract text from TXT file: {exc}") from exc

    @staticmethod
    def _extract_pdf(file_path: str) -> str:
        """Concatenate the text layer of every page (blocking; run in a thread)."""
        try:
            doc = fitz.open(file_path)
        except Exception as exc:
            raise RuntimeError(f"Failed to extract text from PDF: {exc}") from exc

        try:
            if doc.needs_pass:
                raise RuntimeError(
                    "PDF is password-protected. Please provide an unlocked copy."
                )
            pages = [page.get_text("text") for page in doc]
        finally:
            doc.close()

        logger.info("Extracted %d page(s) from %s", len(pages), file_path)
        return "\n".join(pages)

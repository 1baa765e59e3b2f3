"""
Document storage for transaction attachments (receipts, invoices).

Files are streamed to the local documents directory and served back under
the configured public base URL. The returned metadata is what a
FinancialTransaction keeps in its `documents` list.
"""

import os
from datetime import date
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from backend.app.core.config import settings
from backend.app.core.exceptions import BusinessRuleError

CHUNK_SIZE = 1024 * 1024


def _sanitize_filename(filename: Optional[str]) -> Optional[str]:
    if not filename:
        return None
    name = os.path.basename(filename)
    return name.replace("\0", "").strip()


class DocumentStorage:

    def __init__(self, root: Optional[str] = None, base_url: Optional[str] = None):
        self.root = Path(root or settings.documents_dir).resolve()
        self.base_url = (base_url or settings.documents_base_url).rstrip("/")
        self.max_bytes = settings.max_document_size_mb * 1024 * 1024

    async def store_upload(self, upload: UploadFile) -> dict:
        """
        Save an uploaded file and return {name, url, type, size}.

        Raises:
            BusinessRuleError: empty file or file above the size limit
        """
        file_name = _sanitize_filename(upload.filename) or "document"

        # One directory per month keeps listings small
        folder = date.today().strftime("%Y-%m")
        storage_dir = self.root / folder
        storage_dir.mkdir(parents=True, exist_ok=True)

        stored_name = f"{os.urandom(16).hex()}{Path(file_name).suffix}"
        target_path = storage_dir / stored_name

        total_size = 0
        too_large = False
        try:
            with target_path.open("wb") as buffer:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    total_size += len(chunk)
                    if total_size > self.max_bytes:
                        too_large = True
                        break
                    buffer.write(chunk)
        finally:
            await upload.close()

        if too_large:
            target_path.unlink(missing_ok=True)
            raise BusinessRuleError(
                f"Document exceeds the {settings.max_document_size_mb} MB limit",
                details={"name": file_name}
            )

        if total_size == 0:
            target_path.unlink(missing_ok=True)
            raise BusinessRuleError("Uploaded document is empty", details={"name": file_name})

        return {
            "name": file_name,
            "url": f"{self.base_url}/{folder}/{stored_name}",
            "type": upload.content_type,
            "size": total_size,
        }

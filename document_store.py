# document_store.py
import asyncio
import hashlib
import re
from pathlib import Path

from settings import settings


def safe_file_name(raw_name: str) -> str:
    stem = re.sub(r"[^A-Za-z0-9._-]+", "_", raw_name or "document.pdf")[:80]
    return stem or "document.pdf"


class LocalDocumentStore:
    """Stores uploads on local disk and hands back file:// URLs the extractor can fetch."""

    def __init__(self, root: str = None):
        self.root = Path(root or settings.UPLOAD_DIR).resolve()

    def _save(self, org_id: str, file_name: str, data: bytes) -> str:
        digest = hashlib.sha1(data).hexdigest()[:12]
        target_dir = self.root / safe_file_name(org_id)
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"{digest}-{safe_file_name(file_name)}"
        path.write_bytes(data)
        return path.as_uri()

    async def save(self, org_id: str, file_name: str, data: bytes) -> str:
        return await asyncio.to_thread(self._save, org_id, file_name, data)

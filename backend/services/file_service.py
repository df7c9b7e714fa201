import io
import logging
import os
import unicodedata
from datetime import datetime
from pathlib import Path
from typing import Optional

import pdfplumber
from werkzeug.utils import secure_filename

from config import Config
from errors import ValidationError

logger = logging.getLogger(__name__)

UPLOAD_URL_PREFIX = "/uploads/"


class FileService:
    def __init__(self, upload_folder: Optional[str] = None):
        self.upload_folder = upload_folder or Config.UPLOAD_FOLDER
        self.note_extensions = Config.ALLOWED_NOTE_EXTENSIONS
        self.text_extensions = Config.TEXT_EXTENSIONS
        self.max_file_size = Config.MAX_CONTENT_LENGTH

    @staticmethod
    def extension(filename: str) -> str:
        return Path(filename or "").suffix.lower()

    # ---- Text extraction (AI generation input) ----

    def extract_text(self, filename: str, data: bytes, content_type: str = "") -> str:
        """Decode an uploaded file into plain text.

        Text files are read as UTF-8, PDFs go through pdfplumber, anything
        else is decoded with replacement characters.
        """
        ext = self.extension(filename)
        try:
            if (content_type or "").startswith("text/") or ext in self.text_extensions:
                return data.decode("utf-8")
            if ext == ".pdf" or content_type == "application/pdf":
                return self._extract_pdf(data)
            return data.decode("utf-8", errors="replace")
        except Exception as e:
            logger.error(f"File parsing error for {filename}: {e}")
            raise ValidationError("Failed to parse uploaded file.")

    def _extract_pdf(self, data: bytes) -> str:
        full_text = []
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            for page in pdf.pages:
                text = page.extract_text() or ""
                if text.strip():
                    full_text.append(text.strip())
        return "\n\n".join(full_text)

    # ---- Note attachments ----

    def validate_note_file(self, filename: str, size: int) -> None:
        ext = self.extension(filename)
        if ext not in self.note_extensions:
            allowed = ", ".join(sorted(self.note_extensions))
            raise ValidationError(f"Unsupported file type. Allowed: {allowed}")
        if size > self.max_file_size:
            raise ValidationError("File too large")

    def save_upload(self, filename: str, data: bytes) -> str:
        """Write ``data`` under the upload folder; returns its public ``/uploads/...`` URL."""
        self.validate_note_file(filename, len(data))
        os.makedirs(self.upload_folder, exist_ok=True)

        safe_name = unicodedata.normalize("NFKD", filename or "file").encode("ascii", "ignore").decode("ascii")
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        saved_filename = f"{timestamp}_{secure_filename(safe_name) or 'file'}"
        filepath = os.path.join(self.upload_folder, saved_filename)
        with open(filepath, "wb") as f:
            f.write(data)

        logger.info(f"Saved upload {saved_filename} ({len(data)} bytes)")
        return UPLOAD_URL_PREFIX + saved_filename

    def delete_upload(self, file_url: Optional[str]) -> bool:
        """Best-effort removal of a stored upload. Never raises."""
        if not file_url or not file_url.startswith(UPLOAD_URL_PREFIX):
            return False
        name = os.path.basename(file_url[len(UPLOAD_URL_PREFIX):])
        filepath = os.path.join(self.upload_folder, name)
        try:
            os.remove(filepath)
            return True
        except OSError as e:
            logger.warning(f"Could not delete upload {filepath}: {e}")
            return False

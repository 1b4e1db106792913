"""
Print / Export Service Adapter

Hands a rendered listing PDF to the outside world:
- file mode: writes the PDF into the exports folder
- print mode: spools it to a CUPS printer with `lp`
"""

import logging
import re
import subprocess
import tempfile
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

from ..config_loader import config

logger = logging.getLogger(__name__)


class ExportMode(str, Enum):
    FILE = "file"
    PRINT = "print"


class ExportStatus(Enum):
    """Export operation status (service layer)."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ExportJob:
    """Data object representing an export result."""
    file_path: str
    document_name: str
    status: ExportStatus
    message: str
    timestamp: float


def safe_filename(name: str, default: str = "listing") -> str:
    """Filesystem-safe stem, keeping CJK characters."""
    cleaned = re.sub(r'[\\/:*?"<>|\s]+', "_", name).strip("._")
    return cleaned[:80] or default


class PrintService:
    """
    PDF export with file and CUPS printer modes.

    In print mode, sends PDFs to the configured printer via the `lp` command.
    In file mode, saves PDFs to the exports folder.
    """

    def __init__(self, mode: Optional[str] = None, output_dir: Optional[Union[str, Path]] = None):
        """
        Initialize export service.

        Args:
            mode: 'file' or 'print'. Defaults to config.
            output_dir: Folder for file mode. Defaults to config paths.exports.
        """
        self.mode = ExportMode(mode or config.get('export.mode', 'file'))

        printer_config = config.get_section('export').get('printer', {})
        self.printer_name = printer_config.get('name', 'Office_Laser')
        self.fit_to_page = printer_config.get('options', {}).get('fit_to_page', True)
        self.media = printer_config.get('options', {}).get('media', 'A4')

        self.output_dir = Path(output_dir or config.get('paths.exports', './output/listings'))
        if self.mode == ExportMode.FILE:
            logger.info(f"File export enabled. PDFs will be saved to: {self.output_dir}")
        else:
            logger.info(f"Print mode enabled. Printer: {self.printer_name}")

    def export(
        self,
        pdf_bytes: Optional[bytes],
        document_name: str,
        destination: Optional[Union[str, Path]] = None
    ) -> ExportJob:
        """
        Export a rendered listing.

        Args:
            pdf_bytes: Rendered PDF (None or empty = nothing to export)
            document_name: Human-readable name used for the file name and logs
            destination: Explicit output path for file mode

        Returns:
            ExportJob result object
        """
        if not pdf_bytes:
            logger.info("Nothing to export")
            return ExportJob(
                file_path="",
                document_name=document_name,
                status=ExportStatus.SKIPPED,
                message="No rendered document",
                timestamp=time.time()
            )

        if self.mode == ExportMode.PRINT:
            return self._execute_print(pdf_bytes, document_name)
        return self._save_file(pdf_bytes, document_name, destination)

    def _save_file(
        self,
        pdf_bytes: bytes,
        document_name: str,
        destination: Optional[Union[str, Path]]
    ) -> ExportJob:
        """
        Write PDF into the exports folder (or the explicit destination).

        Args:
            pdf_bytes: PDF content
            document_name: Name for the timestamped file

        Returns:
            ExportJob result
        """
        try:
            if destination:
                path = Path(destination)
            else:
                timestamp = time.strftime("%Y%m%d_%H%M%S")
                path = self.output_dir / f"{timestamp}_{safe_filename(document_name)}.pdf"

            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(pdf_bytes)

            logger.info(f"[EXPORT] Saved: {document_name} -> {path}")

            return ExportJob(
                file_path=str(path),
                document_name=document_name,
                status=ExportStatus.SUCCESS,
                message=f"Saved to {path}",
                timestamp=time.time()
            )

        except OSError as e:
            logger.error(f"[EXPORT] Failed to save {document_name}: {e}")

            return ExportJob(
                file_path=str(destination or self.output_dir),
                document_name=document_name,
                status=ExportStatus.FAILED,
                message=f"Save failed: {e}",
                timestamp=time.time()
            )

    def _execute_print(self, pdf_bytes: bytes, document_name: str) -> ExportJob:
        """
        Execute actual print command via CUPS.

        Args:
            pdf_bytes: PDF content
            document_name: Name for the job title and logging

        Returns:
            ExportJob result
        """
        with tempfile.NamedTemporaryFile(prefix="maisoku_", suffix=".pdf", delete=False) as handle:
            handle.write(pdf_bytes)
            file_path = handle.name

        # lp -d Office_Laser -t <title> -o fit-to-page -o media=A4 <file>
        cmd = ["lp", "-d", self.printer_name, "-t", document_name]

        if self.fit_to_page:
            cmd.extend(["-o", "fit-to-page"])

        cmd.extend(["-o", f"media={self.media}"])
        cmd.append(file_path)

        logger.debug(f"Executing print command: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                check=True,
                capture_output=True,
                text=True,
                timeout=30
            )

            logger.info(f"SUCCESS: Spooled listing: {document_name}")

            return ExportJob(
                file_path=file_path,
                document_name=document_name,
                status=ExportStatus.SUCCESS,
                message=result.stdout.strip() if result.stdout else "Spooled successfully",
                timestamp=time.time()
            )

        except subprocess.CalledProcessError as e:
            error_msg = e.stderr.strip() if e.stderr else str(e)
            logger.error(f"ERROR: Print error for {document_name}: {error_msg}")

            return ExportJob(
                file_path=file_path,
                document_name=document_name,
                status=ExportStatus.FAILED,
                message=error_msg,
                timestamp=time.time()
            )

        except subprocess.TimeoutExpired:
            logger.error(f"ERROR: Print timeout for {document_name}")

            return ExportJob(
                file_path=file_path,
                document_name=document_name,
                status=ExportStatus.FAILED,
                message="Print command timeout",
                timestamp=time.time()
            )

        except OSError as e:
            # lp missing from PATH
            logger.error(f"ERROR: Could not run lp for {document_name}: {e}")

            return ExportJob(
                file_path=file_path,
                document_name=document_name,
                status=ExportStatus.FAILED,
                message=str(e),
                timestamp=time.time()
            )

    def get_printer_status(self) -> Dict[str, object]:
        """
        Get printer status from CUPS.

        Returns:
            Dict with printer information or error
        """
        if self.mode == ExportMode.FILE:
            return {
                "mode": "file",
                "available": True,
                "output_dir": str(self.output_dir)
            }

        try:
            result = subprocess.run(
                ["lpstat", "-p", self.printer_name],
                capture_output=True,
                text=True,
                timeout=5
            )

            return {
                "mode": "print",
                "printer": self.printer_name,
                "available": result.returncode == 0,
                "status": result.stdout.strip() if result.returncode == 0 else result.stderr.strip()
            }

        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"Failed to get printer status: {e}")
            return {
                "mode": "print",
                "printer": self.printer_name,
                "available": False,
                "error": str(e)
            }

"""
DocuFlow Vision Module

Prepares an uploaded flyer for extraction and layout:
- Type sniffing (PDF magic bytes, otherwise Pillow)
- PDF -> image rasterization (first page only)
- Image verification and normalization to PNG when the format is not
  one the model and the PDF canvas both accept

All functions work on bytes; no UI or network dependencies.
"""

import io
import logging
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

try:
    from pdf2image import convert_from_bytes
    from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError
except ImportError:
    raise ImportError(
        "pdf2image requires poppler to be installed.\n"
        "Install with: brew install poppler (macOS) or apt-get install poppler-utils (Linux)"
    )

from ..config_loader import config
from ..errors import UnsupportedDocumentError
from ..models import SourceImage

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"

# Pillow format name -> mime type sent to the model as-is
_PASSTHROUGH_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
}


class SourceDocumentLoader:
    """
    Turns uploaded bytes (image or PDF) into a SourceImage.
    """

    def __init__(self, dpi: Optional[int] = None, max_bytes: Optional[int] = None):
        """
        Initialize loader with configuration values.

        Args:
            dpi: Resolution for PDF->Image conversion. Defaults to config.
            max_bytes: Upload size limit. Defaults to config.
        """
        self.dpi = dpi or config.get('upload.pdf_dpi', 200)
        self.max_bytes = max_bytes or config.get('upload.max_bytes', 20 * 1024 * 1024)
        self.accepted_mime_types = set(config.get('upload.accepted_mime_types', [
            'image/jpeg', 'image/png', 'image/webp', 'application/pdf'
        ]))

    def load_file(self, path: Union[str, Path]) -> SourceImage:
        """Read a flyer from disk and load it."""
        path = Path(path)
        if not path.is_file():
            raise UnsupportedDocumentError(f"file not found: {path}")
        return self.load(path.read_bytes(), filename=path.name)

    def load(self, data: bytes, filename: str = "") -> SourceImage:
        """
        Stage an uploaded document.

        Args:
            data: Raw file bytes
            filename: Original filename (for logging and export naming)

        Returns:
            SourceImage with the image bytes that will be sent to the model

        Raises:
            UnsupportedDocumentError: Empty, oversize, unreadable or unsupported input
        """
        if not data:
            raise UnsupportedDocumentError("empty file")
        if len(data) > self.max_bytes:
            raise UnsupportedDocumentError(
                f"file is {len(data) / 1_048_576:.1f}MB, limit is {self.max_bytes / 1_048_576:.0f}MB"
            )

        if data.startswith(PDF_MAGIC):
            self._require_accepted("application/pdf")
            return self._rasterize_pdf(data, filename)
        return self._load_image(data, filename)

    def _require_accepted(self, mime_type: str) -> None:
        if mime_type not in self.accepted_mime_types:
            raise UnsupportedDocumentError(f"{mime_type} uploads are disabled")

    def _load_image(self, data: bytes, filename: str) -> SourceImage:
        try:
            with Image.open(io.BytesIO(data)) as probe:
                probe.verify()
            img = Image.open(io.BytesIO(data))
            img.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
            raise UnsupportedDocumentError(f"not an image or PDF ({e})") from e

        image_format = (img.format or "").upper()
        mime_type = Image.MIME.get(image_format, f"image/{image_format.lower()}")
        self._require_accepted(mime_type)

        if image_format in _PASSTHROUGH_FORMATS:
            logger.info(f"Staged {image_format} image {filename or '<upload>'}: {img.size[0]}x{img.size[1]}")
            return SourceImage(
                data=data,
                mime_type=_PASSTHROUGH_FORMATS[image_format],
                width=img.size[0],
                height=img.size[1],
                filename=filename,
            )

        logger.info(f"Normalizing {image_format} image {filename or '<upload>'} to PNG")
        return self._to_png(img, filename)

    def _rasterize_pdf(self, pdf_bytes: bytes, filename: str) -> SourceImage:
        """
        Convert the first PDF page to a PNG image.

        Only page one is used; multi-page flyers are logged so the operator
        knows the rest was ignored.
        """
        try:
            page_count = len(PdfReader(io.BytesIO(pdf_bytes)).pages)
        except PdfReadError as e:
            raise UnsupportedDocumentError(f"unreadable PDF ({e})") from e

        if page_count == 0:
            raise UnsupportedDocumentError("PDF has no pages")
        if page_count > 1:
            logger.warning(f"PDF {filename or '<upload>'} has {page_count} pages, using page 1 only")

        try:
            images = convert_from_bytes(pdf_bytes, dpi=self.dpi, first_page=1, last_page=1)
        except (PDFInfoNotInstalledError, PDFPageCountError) as e:
            raise UnsupportedDocumentError(f"PDF could not be rasterized ({e})") from e

        if not images:
            raise UnsupportedDocumentError("PDF conversion produced no images")

        logger.debug(f"Rasterized PDF page 1 at {self.dpi} dpi: {images[0].size}")
        source = self._to_png(images[0], filename)
        return SourceImage(
            data=source.data,
            mime_type=source.mime_type,
            width=source.width,
            height=source.height,
            filename=filename,
            page_count=page_count,
        )

    def _to_png(self, img: Image.Image, filename: str) -> SourceImage:
        if img.mode not in ("RGB", "RGBA", "L"):
            img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
        output = io.BytesIO()
        img.save(output, format="PNG", optimize=True)
        logger.info(f"Staged PNG image {filename or '<upload>'}: {img.size[0]}x{img.size[1]}, {output.tell()} bytes")
        return SourceImage(
            data=output.getvalue(),
            mime_type="image/png",
            width=img.size[0],
            height=img.size[1],
            filename=filename,
        )


def load_source(data: bytes, filename: str = "") -> SourceImage:
    """
    Convenience wrapper around SourceDocumentLoader.load

    Args:
        data: Raw upload bytes
        filename: Original filename

    Returns:
        SourceImage
    """
    return SourceDocumentLoader().load(data, filename=filename)

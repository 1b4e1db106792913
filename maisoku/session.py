"""
Maisoku Translator Session Orchestrator

Coordinates one operator's work on one flyer:
1. Upload (stage a source image, PDFs rasterized to PNG)
2. Convert (extract + translate with Gemini, lay out the page)
3. Change language (relabel the current page, no new extraction)
4. Export (render PDF, save or print)

Convert is gated: credentials present, a source staged, no quota
cooldown running, and no other conversion in flight.
"""

import logging
import threading
from pathlib import Path
from typing import Optional, Union

from .config_loader import config
from .cooldown import CooldownGate
from .errors import (
    ConfigurationMissingError,
    ConversionInProgressError,
    CooldownActiveError,
    NoSourceStagedError,
    QuotaExhaustedError,
)
from .models import ListingRecord, SourceImage, TargetLanguage
from .docuflow.extractor import ExtractionClient
from .docuflow.renderer import DocumentLayout, DocumentRenderer
from .docuflow.vision import SourceDocumentLoader
from .services.printer import ExportJob, PrintService

logger = logging.getLogger(__name__)


class ListingSession:
    """
    Upload -> convert -> export workflow for a single flyer at a time.

    The record and layout always belong to the most recent upload. A
    conversion that finishes after a newer upload is discarded.
    """

    def __init__(
        self,
        client: Optional[ExtractionClient] = None,
        renderer: Optional[DocumentRenderer] = None,
        loader: Optional[SourceDocumentLoader] = None,
        printer: Optional[PrintService] = None,
        cooldown: Optional[CooldownGate] = None,
        target_language: Optional[TargetLanguage] = None
    ):
        """
        Initialize session with services.

        Args:
            client: Extraction client. Defaults to a config-driven one.
            renderer: Document renderer. Defaults to settings.yaml layout.
            loader: Upload loader.
            printer: Export service.
            cooldown: Quota cooldown gate. Defaults to extraction.cooldown_seconds.
            target_language: Initial output language. Defaults to session.default_language.
        """
        self.client = client or ExtractionClient()
        self.renderer = renderer or DocumentRenderer()
        self.loader = loader or SourceDocumentLoader()
        self.printer = printer or PrintService()
        self.cooldown = cooldown or CooldownGate(
            duration=int(config.get('extraction.cooldown_seconds', 120))
        )

        self._target_language = target_language or TargetLanguage.from_code(
            config.get('session.default_language', 'zh-TW')
        )
        self._source: Optional[SourceImage] = None
        self._record: Optional[ListingRecord] = None
        self._layout: Optional[DocumentLayout] = None
        self._generation = 0

        self._state_lock = threading.Lock()
        self._convert_lock = threading.Lock()

        logger.info(f"Session ready (language={self._target_language.code})")

    # ---------- state ----------

    @property
    def source(self) -> Optional[SourceImage]:
        return self._source

    @property
    def record(self) -> Optional[ListingRecord]:
        return self._record

    @property
    def document(self) -> Optional[DocumentLayout]:
        return self._layout

    @property
    def target_language(self) -> TargetLanguage:
        return self._target_language

    @property
    def is_converting(self) -> bool:
        return self._convert_lock.locked()

    # ---------- actions ----------

    def upload(self, source: Union[str, Path, bytes], filename: str = "") -> SourceImage:
        """
        Stage a flyer for conversion.

        Clears the current record and document.

        Args:
            source: Path to an image/PDF file, or its raw bytes
            filename: Original filename when passing bytes

        Returns:
            The staged SourceImage

        Raises:
            UnsupportedDocumentError: Not a readable image or PDF
        """
        if isinstance(source, (bytes, bytearray)):
            staged = self.loader.load(bytes(source), filename=filename)
        else:
            staged = self.loader.load_file(source)

        with self._state_lock:
            self._source = staged
            self._record = None
            self._layout = None
            self._generation += 1

        logger.info(
            f"Uploaded {staged.filename or '<bytes>'} "
            f"({staged.mime_type}, {staged.width}x{staged.height})"
        )
        return staged

    def convert(self) -> Optional[DocumentLayout]:
        """
        Extract the staged flyer and lay out the translated page.

        Returns:
            The new DocumentLayout, or None when a newer upload replaced the
            source while the extraction was running

        Raises:
            ConfigurationMissingError: No API key
            NoSourceStagedError: Nothing uploaded
            CooldownActiveError: Quota cooldown still running
            ConversionInProgressError: Another convert is running
            ExtractionError: Any classified extraction failure
        """
        if not self.client.has_credentials:
            raise ConfigurationMissingError("No API key configured")

        with self._state_lock:
            source = self._source
            generation = self._generation
            language = self._target_language

        if source is None:
            raise NoSourceStagedError("No source staged")

        remaining = self.cooldown.remaining
        if remaining > 0:
            raise CooldownActiveError(remaining)

        if not self._convert_lock.acquire(blocking=False):
            raise ConversionInProgressError("Conversion already running")

        try:
            logger.info(f"Converting {source.filename or '<bytes>'} -> {language.code}")
            try:
                record = self.client.extract(source.data, source.mime_type, language)
            except QuotaExhaustedError:
                self.cooldown.trigger()
                raise

            with self._state_lock:
                if generation != self._generation:
                    logger.warning(
                        f"Discarding result for {source.filename or '<bytes>'}: "
                        "a newer upload replaced it"
                    )
                    return None
                # Language may have changed while the request was in flight
                layout = self.renderer.layout(record, self._target_language)
                self._record = record
                self._layout = layout

            logger.info(f"Conversion complete: '{record.property_name}'")
            return layout

        finally:
            self._convert_lock.release()

    def change_language(self, language: Union[TargetLanguage, str]) -> Optional[DocumentLayout]:
        """
        Switch the output language.

        The current document (if any) is relabeled from the existing record;
        nothing is re-extracted. The next convert uses the new language.

        Args:
            language: TargetLanguage or a code such as 'en'

        Returns:
            The relabeled layout, or None when no document exists yet
        """
        if not isinstance(language, TargetLanguage):
            language = TargetLanguage.from_code(language)

        with self._state_lock:
            self._target_language = language
            if self._record is not None:
                self._layout = self.renderer.layout(self._record, language)
            layout = self._layout

        logger.info(f"Target language set to {language.code}")
        return layout

    def render_pdf(self) -> Optional[bytes]:
        """Render the current document, or None when there is none."""
        with self._state_lock:
            layout = self._layout
            source = self._source
        if layout is None:
            return None
        return self.renderer.render_layout(layout, source)

    def export(self, destination: Optional[Union[str, Path]] = None) -> Optional[ExportJob]:
        """
        Render the current document and hand it to the export service.

        Args:
            destination: Explicit output file (file mode only)

        Returns:
            ExportJob, or None when there is no document to export
        """
        with self._state_lock:
            layout = self._layout
        if layout is None:
            logger.info("Export requested with no document; nothing to do")
            return None

        pdf_bytes = self.render_pdf()
        return self.printer.export(pdf_bytes, layout.header.title, destination=destination)

    def __repr__(self) -> str:
        return (
            f"ListingSession(language={self._target_language.code}, "
            f"staged={self._source is not None}, converted={self._record is not None}, "
            f"cooldown={self.cooldown.remaining})"
        )

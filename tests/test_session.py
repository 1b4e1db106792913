"""
Listing Session Tests

End-to-end workflow with a mocked Gemini model:
- Gating (credentials, staged source, cooldown, re-entrancy)
- Quota failure -> cooldown -> retry
- Last write wins when an upload races a conversion
- Language change without re-extraction
- Export (no-op without a document, file output with one)
"""

import shutil
import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from PIL import Image

from maisoku.cooldown import CooldownGate
from maisoku.docuflow.extractor import ExtractionClient
from maisoku.errors import (
    AuthRejectedError,
    ConfigurationMissingError,
    ConversionInProgressError,
    CooldownActiveError,
    NoSourceStagedError,
    QuotaExhaustedError,
    UnsupportedDocumentError,
)
from maisoku.models import TargetLanguage
from maisoku.services.printer import ExportStatus, PrintService
from maisoku.session import ListingSession
from tests.fixtures import FULL_PAYLOAD, SORA_PAYLOAD, FakeProviderError, ai_message, make_image_bytes


class TestListingSession(unittest.TestCase):
    """Test suite for the upload -> convert -> export workflow."""

    def setUp(self):
        self.output_dir = Path(tempfile.mkdtemp(prefix="maisoku_test_"))
        self.addCleanup(shutil.rmtree, self.output_dir, ignore_errors=True)

        self.mock_llm = MagicMock()
        self.mock_llm.invoke.return_value = ai_message(SORA_PAYLOAD)
        self.client = ExtractionClient(api_key="test-key", llm=self.mock_llm)
        self.cooldown = CooldownGate(duration=3, auto_tick=False)
        self.session = ListingSession(
            client=self.client,
            printer=PrintService(mode="file", output_dir=self.output_dir),
            cooldown=self.cooldown,
            target_language=TargetLanguage.TRADITIONAL_CHINESE
        )
        self.flyer = make_image_bytes("PNG")

    def test_convert_happy_path(self):
        self.session.upload(self.flyer, filename="sora.png")
        layout = self.session.convert()

        self.assertIsNotNone(layout)
        self.assertEqual(layout.header.title, "Sora Heights")
        self.assertEqual(self.session.record.price, "¥45,000,000")
        self.assertIs(self.session.document, layout)

    def test_convert_without_upload(self):
        with self.assertRaises(NoSourceStagedError):
            self.session.convert()
        self.mock_llm.invoke.assert_not_called()

    def test_convert_without_credentials(self):
        session = ListingSession(
            client=ExtractionClient(api_key="", llm=self.mock_llm),
            printer=PrintService(mode="file", output_dir=self.output_dir),
            cooldown=self.cooldown
        )
        session.upload(self.flyer)

        with self.assertRaises(ConfigurationMissingError):
            session.convert()
        self.mock_llm.invoke.assert_not_called()

    def test_quota_failure_starts_cooldown(self):
        """Quota error closes the gate; convert works again once it clears."""
        self.mock_llm.invoke.side_effect = [
            FakeProviderError("Resource has been exhausted", code=429),
            ai_message(SORA_PAYLOAD),
        ]
        self.session.upload(self.flyer)

        with self.assertRaises(QuotaExhaustedError):
            self.session.convert()
        self.assertEqual(self.cooldown.remaining, 3)

        with self.assertRaises(CooldownActiveError) as ctx:
            self.session.convert()
        self.assertEqual(ctx.exception.remaining, 3)
        self.assertEqual(self.mock_llm.invoke.call_count, 1)

        for _ in range(3):
            self.cooldown.tick()
        self.assertFalse(self.cooldown.is_active)

        layout = self.session.convert()
        self.assertEqual(layout.header.title, "Sora Heights")
        self.assertEqual(self.mock_llm.invoke.call_count, 2)

    def test_other_errors_do_not_start_cooldown(self):
        self.mock_llm.invoke.side_effect = FakeProviderError("denied", code=403)
        self.session.upload(self.flyer)

        with self.assertRaises(AuthRejectedError):
            self.session.convert()
        self.assertFalse(self.cooldown.is_active)

    def test_second_convert_rejected_while_running(self):
        started = threading.Event()
        release = threading.Event()

        def slow_invoke(messages):
            started.set()
            release.wait(timeout=5)
            return ai_message(SORA_PAYLOAD)

        self.mock_llm.invoke.side_effect = slow_invoke
        self.session.upload(self.flyer)

        results = {}
        worker = threading.Thread(target=lambda: results.setdefault("layout", self.session.convert()))
        worker.start()
        self.assertTrue(started.wait(timeout=5))

        try:
            self.assertTrue(self.session.is_converting)
            with self.assertRaises(ConversionInProgressError):
                self.session.convert()
        finally:
            release.set()
            worker.join(timeout=5)

        self.assertEqual(results["layout"].header.title, "Sora Heights")
        self.assertEqual(self.mock_llm.invoke.call_count, 1)

    def test_newer_upload_wins(self):
        """A result for a replaced source is discarded."""
        newer = make_image_bytes("PNG", color=(200, 40, 40))

        def invoke_with_reupload(messages):
            self.session.upload(newer, filename="newer.png")
            return ai_message(SORA_PAYLOAD)

        self.mock_llm.invoke.side_effect = invoke_with_reupload
        self.session.upload(self.flyer, filename="first.png")

        self.assertIsNone(self.session.convert())
        self.assertIsNone(self.session.record)
        self.assertIsNone(self.session.document)
        self.assertEqual(self.session.source.filename, "newer.png")

    def test_upload_clears_previous_result(self):
        self.session.upload(self.flyer)
        self.session.convert()

        self.session.upload(make_image_bytes("JPEG"), filename="next.jpg")
        self.assertIsNone(self.session.record)
        self.assertIsNone(self.session.document)

    def test_bad_upload_keeps_state(self):
        self.session.upload(self.flyer)
        self.session.convert()

        with self.assertRaises(UnsupportedDocumentError):
            self.session.upload(b"not an image", filename="notes.txt")
        self.assertIsNotNone(self.session.document)

    def test_oversized_pixel_upload_rejected(self):
        self.session.upload(self.flyer, filename="first.png")

        with patch.object(Image, "MAX_IMAGE_PIXELS", 1000):
            with self.assertRaises(UnsupportedDocumentError):
                self.session.upload(make_image_bytes("PNG", size=(200, 200)), filename="huge.png")
        self.assertEqual(self.session.source.filename, "first.png")

    def test_change_language_relabels_without_extraction(self):
        self.session.upload(self.flyer)
        self.session.convert()

        layout = self.session.change_language("en")

        self.assertEqual(self.session.target_language, TargetLanguage.ENGLISH)
        self.assertEqual(layout.cell("location").label, "Location")
        self.assertEqual(layout.header.title, "Sora Heights")
        self.assertEqual(layout.footer.issuer.organization, "SORA Co., Ltd.")
        self.assertEqual(self.mock_llm.invoke.call_count, 1)

    def test_change_language_affects_next_convert(self):
        self.assertIsNone(self.session.change_language(TargetLanguage.SIMPLIFIED_CHINESE))

        self.session.upload(self.flyer)
        self.session.convert()

        _, text_part = self.mock_llm.invoke.call_args[0][0][0].content
        self.assertIn("Simplified Chinese", text_part["text"])
        self.assertEqual(self.session.document.language, TargetLanguage.SIMPLIFIED_CHINESE)

    def test_export_without_document_is_noop(self):
        self.assertIsNone(self.session.export())
        self.assertEqual(list(self.output_dir.iterdir()), [])

    def test_export_writes_pdf(self):
        self.mock_llm.invoke.return_value = ai_message(FULL_PAYLOAD)
        self.session.upload(self.flyer, filename="kyomachibori.png")
        self.session.convert()

        job = self.session.export()

        self.assertEqual(job.status, ExportStatus.SUCCESS)
        written = Path(job.file_path)
        self.assertTrue(written.exists())
        self.assertEqual(written.parent, self.output_dir)
        self.assertTrue(written.read_bytes().startswith(b"%PDF"))
        self.assertIn("Kyomachibori_Residence", written.name)

    def test_export_to_destination(self):
        self.session.upload(self.flyer)
        self.session.convert()

        target = self.output_dir / "nested" / "sora.pdf"
        job = self.session.export(destination=target)

        self.assertEqual(job.status, ExportStatus.SUCCESS)
        self.assertTrue(target.exists())


if __name__ == "__main__":
    unittest.main()

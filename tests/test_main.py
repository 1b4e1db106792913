"""
Command-line entry point tests (Gemini chat model patched out).
"""

import io
import json
import os
import shutil
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import MagicMock, patch

from maisoku.main import build_parser, cli, main
from tests.fixtures import SORA_PAYLOAD, FakeProviderError, ai_message, make_image_bytes


@patch("maisoku.main.setup_logging")
@patch.dict(os.environ, {"GEMINI_API_KEY": "test-key"})
class TestCli(unittest.TestCase):

    def setUp(self):
        self.tmp_dir = Path(tempfile.mkdtemp(prefix="maisoku_cli_"))
        self.addCleanup(shutil.rmtree, self.tmp_dir, ignore_errors=True)
        self.flyer = self.tmp_dir / "sora.png"
        self.flyer.write_bytes(make_image_bytes("PNG"))

    @patch("maisoku.docuflow.extractor.ChatGoogleGenerativeAI")
    def test_writes_pdf(self, mock_chat, _setup_logging):
        mock_chat.return_value.invoke.return_value = ai_message(SORA_PAYLOAD)
        output = self.tmp_dir / "out" / "sora.pdf"

        with redirect_stdout(io.StringIO()):
            code = cli([str(self.flyer), "--lang", "en", "--output", str(output)])

        self.assertEqual(code, 0)
        self.assertTrue(output.read_bytes().startswith(b"%PDF"))
        kwargs = mock_chat.call_args.kwargs
        self.assertEqual(kwargs["google_api_key"], "test-key")
        self.assertEqual(kwargs["response_mime_type"], "application/json")
        self.assertEqual(kwargs["max_retries"], 0)

    @patch("maisoku.docuflow.extractor.ChatGoogleGenerativeAI")
    def test_json_output(self, mock_chat, _setup_logging):
        mock_chat.return_value.invoke.return_value = ai_message(SORA_PAYLOAD)

        buffer = io.StringIO()
        with redirect_stdout(buffer):
            code = cli([str(self.flyer), "--json"])

        self.assertEqual(code, 0)
        self.assertEqual(json.loads(buffer.getvalue()), SORA_PAYLOAD)

    @patch("maisoku.docuflow.extractor.ChatGoogleGenerativeAI")
    def test_quota_failure_exit_code(self, mock_chat, _setup_logging):
        mock_chat.return_value.invoke.side_effect = FakeProviderError("quota", code=429)

        buffer = io.StringIO()
        with redirect_stdout(buffer):
            code = cli([str(self.flyer), "--lang", "en"])

        self.assertEqual(code, 1)
        self.assertIn("QuotaExhaustedError", buffer.getvalue())

    @patch("maisoku.services.printer.subprocess.run")
    @patch("maisoku.docuflow.extractor.ChatGoogleGenerativeAI")
    def test_print_checks_printer_then_spools(self, mock_chat, mock_run, _setup_logging):
        mock_chat.return_value.invoke.return_value = ai_message(SORA_PAYLOAD)
        mock_run.return_value = MagicMock(returncode=0, stdout="printer Office_Laser is idle.\n", stderr="")

        summary = main(str(self.flyer), language="en", print_mode=True)
        self.addCleanup(Path(summary["export_path"]).unlink)

        self.assertTrue(summary["success"])
        self.assertTrue(summary["printer"]["available"])
        commands = [call.args[0][0] for call in mock_run.call_args_list]
        self.assertEqual(commands, ["lpstat", "lp"])

    @patch("maisoku.services.printer.subprocess.run")
    @patch("maisoku.docuflow.extractor.ChatGoogleGenerativeAI")
    def test_print_skipped_when_printer_unavailable(self, mock_chat, mock_run, _setup_logging):
        mock_chat.return_value.invoke.return_value = ai_message(SORA_PAYLOAD)
        mock_run.return_value = MagicMock(returncode=1, stdout="", stderr="lpstat: Invalid destination name")

        summary = main(str(self.flyer), language="en", print_mode=True)

        self.assertFalse(summary["success"])
        self.assertEqual(summary["export_status"], "skipped")
        self.assertIn("Invalid destination", summary["message"])
        self.assertEqual(mock_run.call_count, 1)

    def test_unsupported_language_rejected(self, _setup_logging):
        with self.assertRaises(SystemExit):
            with redirect_stdout(io.StringIO()):
                build_parser().parse_args([str(self.flyer), "--lang", "ko"])


if __name__ == "__main__":
    unittest.main()

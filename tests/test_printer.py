"""
Export service tests (file mode on disk, print mode with a mocked `lp`).
"""

import shutil
import subprocess
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

from maisoku.services.printer import ExportMode, ExportStatus, PrintService, safe_filename

PDF = b"%PDF-1.4\n% test document\n%%EOF\n"


class TestFileExport(unittest.TestCase):

    def setUp(self):
        self.output_dir = Path(tempfile.mkdtemp(prefix="maisoku_export_"))
        self.addCleanup(shutil.rmtree, self.output_dir, ignore_errors=True)
        self.service = PrintService(mode="file", output_dir=self.output_dir)

    def test_saves_timestamped_file(self):
        job = self.service.export(PDF, "Sora Heights")

        self.assertEqual(job.status, ExportStatus.SUCCESS)
        path = Path(job.file_path)
        self.assertEqual(path.read_bytes(), PDF)
        self.assertTrue(path.name.endswith("_Sora_Heights.pdf"))

    def test_explicit_destination(self):
        target = self.output_dir / "a" / "b" / "listing.pdf"
        job = self.service.export(PDF, "Sora Heights", destination=target)

        self.assertEqual(job.file_path, str(target))
        self.assertEqual(target.read_bytes(), PDF)

    def test_nothing_to_export(self):
        job = self.service.export(None, "Sora Heights")
        self.assertEqual(job.status, ExportStatus.SKIPPED)
        self.assertEqual(list(self.output_dir.iterdir()), [])

    def test_status_in_file_mode(self):
        status = self.service.get_printer_status()
        self.assertTrue(status["available"])
        self.assertEqual(status["mode"], "file")

    def test_safe_filename(self):
        self.assertEqual(safe_filename("空ハイツ 502/B"), "空ハイツ_502_B")
        self.assertEqual(safe_filename("///"), "listing")


class TestPrintExport(unittest.TestCase):

    def setUp(self):
        self.service = PrintService(mode="print")
        self.assertEqual(self.service.mode, ExportMode.PRINT)

    @patch("maisoku.services.printer.subprocess.run")
    def test_spools_with_lp(self, mock_run):
        mock_run.return_value = MagicMock(stdout="request id is Office_Laser-42 (1 file(s))\n")

        job = self.service.export(PDF, "Sora Heights")
        self.addCleanup(Path(job.file_path).unlink)

        self.assertEqual(job.status, ExportStatus.SUCCESS)
        cmd = mock_run.call_args[0][0]
        self.assertEqual(cmd[:3], ["lp", "-d", "Office_Laser"])
        self.assertIn("fit-to-page", cmd)
        self.assertIn("media=A4", cmd)
        self.assertEqual(Path(cmd[-1]).read_bytes(), PDF)

    @patch("maisoku.services.printer.subprocess.run")
    def test_lp_failure(self, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(1, ["lp"], stderr="lp: No such destination")

        job = self.service.export(PDF, "Sora Heights")
        self.addCleanup(Path(job.file_path).unlink)

        self.assertEqual(job.status, ExportStatus.FAILED)
        self.assertIn("No such destination", job.message)

    @patch("maisoku.services.printer.subprocess.run")
    def test_lp_missing(self, mock_run):
        mock_run.side_effect = FileNotFoundError("lp")

        job = self.service.export(PDF, "Sora Heights")
        self.addCleanup(Path(job.file_path).unlink)

        self.assertEqual(job.status, ExportStatus.FAILED)


if __name__ == "__main__":
    unittest.main()

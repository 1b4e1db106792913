"""
Maisoku Translator Main Entry Point

Runs one flyer through the session workflow:
1. Upload the flyer (image or PDF)
2. Convert (extract + translate)
3. Export the listing PDF (file or printer), or print the record as JSON
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .errors import ExtractionError, SessionError
from .logging_config import setup_logging
from .models import TargetLanguage
from .services.printer import ExportStatus, PrintService
from .session import ListingSession

logger = logging.getLogger(__name__)


def main(
    file_path: str,
    language: Optional[str] = None,
    output: Optional[str] = None,
    print_mode: bool = False,
    as_json: bool = False
) -> Dict[str, Any]:
    """
    Translate one flyer.

    Args:
        file_path: Flyer image or PDF
        language: Target language code (zh-TW, zh-CN, en). Defaults to config.
        output: Explicit PDF path (file mode)
        print_mode: Send the PDF to the configured printer instead of a file
        as_json: Return the extracted record instead of exporting (unless output is given)

    Returns:
        Execution summary dict
    """
    target = TargetLanguage.from_code(language) if language else None
    session = ListingSession(
        printer=PrintService(mode="print" if print_mode else None),
        target_language=target
    )
    language = session.target_language

    try:
        session.upload(file_path)
        layout = session.convert()
    except (ExtractionError, SessionError) as e:
        logger.error(f"Conversion failed: {e}")
        return {
            "success": False,
            "error": type(e).__name__,
            "message": e.user_message(language)
        }

    if layout is None:
        return {"success": False, "error": "Discarded", "message": "Result superseded"}

    summary: Dict[str, Any] = {
        "success": True,
        "property": session.record.property_name,
        "language": language.code,
        "features_shown": len(layout.features),
        "features_hidden": layout.hidden_features,
        "token_usage": session.client.get_token_usage(),
    }

    if as_json:
        summary["record"] = session.record.to_payload()
        if not output:
            return summary

    if print_mode:
        printer_status = session.printer.get_printer_status()
        summary["printer"] = printer_status
        if not printer_status.get("available"):
            logger.error(f"Printer {printer_status.get('printer')} unavailable; nothing spooled")
            summary["success"] = False
            summary["export_status"] = ExportStatus.SKIPPED.value
            summary["message"] = printer_status.get("error") or printer_status.get("status") or "Printer unavailable"
            return summary

    job = session.export(destination=output)
    summary["export_status"] = job.status.value
    summary["export_path"] = job.file_path
    summary["success"] = job.status == ExportStatus.SUCCESS
    if not summary["success"]:
        summary["message"] = job.message
    return summary


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="maisoku",
        description="Translate a Japanese real-estate flyer into a one-page listing PDF",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  maisoku flyer.jpg                          # Traditional Chinese (default) PDF
  maisoku flyer.pdf --lang en                # English PDF
  maisoku flyer.png --output out/sora.pdf    # Explicit output file
  maisoku flyer.png --print                  # Send to the configured printer
  maisoku flyer.png --json                   # Print extracted fields only
        """
    )
    parser.add_argument("file", help="Flyer image (JPEG/PNG/WebP) or PDF")
    parser.add_argument(
        "--lang",
        choices=[language.code for language in TargetLanguage],
        help="Target language (default: session.default_language in settings.yaml)"
    )
    parser.add_argument("--output", help="Write the PDF to this path")
    parser.add_argument("--print", dest="print_mode", action="store_true", help="Print via CUPS instead of saving")
    parser.add_argument("--json", dest="as_json", action="store_true", help="Output the extracted record as JSON")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Override log level")
    return parser


def cli(argv: Optional[List[str]] = None) -> int:
    """Console script entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(log_level=args.log_level)

    try:
        summary = main(
            args.file,
            language=args.lang,
            output=args.output,
            print_mode=args.print_mode,
            as_json=args.as_json
        )
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user")
        return 130

    if args.as_json and "record" in summary:
        print(json.dumps(summary["record"], ensure_ascii=False, indent=2))
    else:
        for key, value in summary.items():
            print(f"  {key}: {value}")

    return 0 if summary.get("success") else 1


if __name__ == "__main__":
    sys.exit(cli())

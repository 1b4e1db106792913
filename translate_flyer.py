#!/usr/bin/env python3
"""
Maisoku Translator CLI Entry Point

Usage:
    python translate_flyer.py FLYER                  # Traditional Chinese PDF
    python translate_flyer.py FLYER --lang en        # English PDF
    python translate_flyer.py FLYER --print          # Send to the printer
    python translate_flyer.py FLYER --json           # Extracted fields as JSON
    python translate_flyer.py --help                 # Show all options

First time setup:
    1. Configure the API key:   python configure.py
    2. Translate a flyer:       python translate_flyer.py samples/flyer.jpg
"""

import sys

from maisoku.main import cli

if __name__ == "__main__":
    print("\n" + "="*60)
    print("Maisoku Translator - Japanese Flyer -> Listing PDF")
    print("="*60 + "\n")

    try:
        sys.exit(cli())
    except Exception as e:
        print(f"\n\nFATAL ERROR: {e}")
        sys.exit(1)

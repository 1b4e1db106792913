#!/usr/bin/env python3
"""
Maisoku Translator Configuration Script

Quick setup for the Gemini key and defaults.
Usage:
    python configure.py                           # Interactive mode
    python configure.py --api-key YOUR_KEY        # Direct mode
    python configure.py --model MODEL_NAME        # Change extraction model
    python configure.py --language en             # Change default output language
"""

import argparse
import re
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).parent
SETTINGS_FILE = ROOT_DIR / "config" / "settings.yaml"

# Gemini models that accept inline images and JSON response mode
VISION_MODELS = {
    "gemini-1.5-flash",
    "gemini-1.5-flash-8b",
    "gemini-1.5-pro",
    "gemini-2.0-flash",
    "gemini-2.5-flash",
    "gemini-2.5-pro",
}

LANGUAGE_CODES = ("zh-TW", "zh-CN", "en")


def setup_env_file(api_key: str, force: bool = False) -> bool:
    """
    Create or update .env file with the Gemini API key.

    Args:
        api_key: The Gemini API key
        force: Overwrite existing .env file

    Returns:
        True if successful
    """
    env_file = ROOT_DIR / ".env"
    env_example = ROOT_DIR / ".env.example"

    if env_file.exists() and not force:
        print(f"⚠️  .env file already exists at {env_file}")
        response = input("Overwrite? [y/N]: ").strip().lower()
        if response != 'y':
            print("❌ Setup cancelled.")
            return False

    if not env_example.exists():
        print(f"❌ Error: .env.example template not found at {env_example}")
        return False

    env_content = env_example.read_text(encoding="utf-8").replace(
        "GEMINI_API_KEY=your_gemini_api_key_here",
        f"GEMINI_API_KEY={api_key}"
    )

    env_file.write_text(env_content, encoding="utf-8")
    print(f"✅ Created {env_file}")
    print("✅ API key configured. Restart the translator to pick it up.")

    return True


def _replace_setting(key: str, value: str) -> bool:
    """
    Rewrite one quoted scalar in settings.yaml, keeping its trailing comment.

    Args:
        key: Indented YAML key, e.g. '    model'
        value: New value (written in double quotes)

    Returns:
        True if the key was found and updated
    """
    if not SETTINGS_FILE.exists():
        print(f"❌ Error: Configuration file not found at {SETTINGS_FILE}")
        return False

    content = SETTINGS_FILE.read_text(encoding="utf-8")
    pattern = rf'^({re.escape(key)}: )"[^"]*"(.*?)$'
    new_content, count = re.subn(pattern, rf'\g<1>"{value}"\g<2>', content, count=1, flags=re.MULTILINE)

    if count == 0:
        print(f"❌ Error: Could not find '{key.strip()}' in {SETTINGS_FILE}")
        return False

    SETTINGS_FILE.write_text(new_content, encoding="utf-8")
    return True


def update_model_config(model_name: str) -> bool:
    """
    Update extraction.model in config/settings.yaml.

    Args:
        model_name: Gemini model name

    Returns:
        True if successful
    """
    if model_name not in VISION_MODELS:
        print(f"❌ Error: '{model_name}' is not a known Gemini vision model.")
        print()
        print("Known models:")
        for model in sorted(VISION_MODELS):
            print(f"  • {model}")
        return False

    if not _replace_setting("    model", model_name):
        return False
    print(f"✅ Extraction model set to: {model_name}")
    return True


def update_default_language(code: str) -> bool:
    """Update session.default_language in config/settings.yaml."""
    if code not in LANGUAGE_CODES:
        print(f"❌ Error: '{code}' is not supported (use one of {', '.join(LANGUAGE_CODES)})")
        return False

    if not _replace_setting("    default_language", code):
        return False
    print(f"✅ Default output language set to: {code}")
    return True


def interactive_setup() -> bool:
    """Interactive setup mode."""
    print("=" * 60)
    print("Maisoku Translator Setup - Gemini API Key")
    print("=" * 60)
    print()
    print("Get a Gemini API key from:")
    print("👉 https://aistudio.google.com/app/apikey")
    print()

    api_key = input("Enter your Gemini API key: ").strip()

    if not api_key:
        print("❌ Error: API key cannot be empty")
        return False

    if api_key == "your_gemini_api_key_here":
        print("❌ Error: Please provide a real API key, not the placeholder")
        return False

    print()
    return setup_env_file(api_key)


def main():
    parser = argparse.ArgumentParser(
        description="Maisoku Translator Setup - Configure API key and defaults",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python configure.py                                    # Interactive mode
  python configure.py --api-key YOUR_KEY                 # Direct mode
  python configure.py --api-key YOUR_KEY --force         # Overwrite existing
  python configure.py --model gemini-2.5-flash           # Change extraction model
  python configure.py --language en                      # Default to English output
        """
    )

    parser.add_argument("--api-key", type=str, help="Gemini API key")
    parser.add_argument("--force", action="store_true", help="Overwrite existing .env file without asking")
    parser.add_argument("--model", type=str, help="Gemini model name (e.g., gemini-2.5-flash)")
    parser.add_argument("--language", type=str, help="Default output language (zh-TW, zh-CN, en)")

    args = parser.parse_args()

    if args.model or args.language:
        success = True
        if args.model:
            success = update_model_config(args.model) and success
        if args.language:
            success = update_default_language(args.language) and success
        sys.exit(0 if success else 1)

    if args.api_key:
        success = setup_env_file(args.api_key, force=args.force)
        sys.exit(0 if success else 1)

    success = interactive_setup()
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()

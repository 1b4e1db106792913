"""
Maisoku Translator

Turns a Japanese real-estate flyer (maisoku) into a translated,
single-page listing document:
- docuflow: source loading, Gemini extraction, layout and PDF rendering
- services: export adapters (file / CUPS printer)
- session: upload -> convert -> export orchestration
"""

__version__ = "0.3.0"

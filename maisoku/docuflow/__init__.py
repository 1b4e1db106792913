"""
DocuFlow - Flyer Extraction and Listing Rendering

This package provides isolated, testable document processing:
- Vision: Upload sniffing, PDF rasterization, image normalization
- Extractor: Gemini multimodal extraction with cache and error classification
- Renderer: Single-page listing layout and PDF drawing

All components are independent of the session and export infrastructure.
"""

__all__ = ['vision', 'extractor', 'renderer', 'cache', 'prompts', 'labels']

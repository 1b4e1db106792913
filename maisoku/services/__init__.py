"""
Service Adapters

I/O layer components that wrap external systems:
- Printer (CUPS) / file export

These adapters provide clean interfaces and isolate external dependencies.
"""

__all__ = ['printer']

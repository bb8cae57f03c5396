"""Command line entry point (``pharma-ocr``)."""

"""Quality-adaptive preprocessing of prescription images for OCR."""

__version__ = "1.0.0"

"""
Services package for invoice extraction application.

Contains:
- pdf_service: PDF to JPEG page rasterization
- ai: OpenAI integration for invoice field extraction
- pipeline: Sequential batch processing with per-file status
- export: CSV export and display formatting
"""

from .ai import AIService
from .pdf_service import PDFService
from .pipeline import BatchPipeline

__all__ = ["PDFService", "AIService", "BatchPipeline"]

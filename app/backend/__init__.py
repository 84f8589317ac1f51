"""
Invoice Extraction Backend Application.

A FastAPI service that rasterizes uploaded invoice PDFs and extracts
invoice fields from the first page using AI (OpenAI GPT-4.1).
"""

__version__ = "1.0.0"

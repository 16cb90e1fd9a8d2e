"""Document-understanding client for mail scans."""

from mailsort.extraction.gemini_client import (
    GeminiExtractionClient,
    create_extraction_client,
    parse_response,
    translate_service_error,
)

__all__ = ["GeminiExtractionClient", "create_extraction_client", "parse_response", "translate_service_error"]

"""
services/registry.py — Module-level service singletons.

All heavy work (API clients) is deferred to first use, so importing this
module does no I/O.
"""

from services.ai_service import AIService
from services.file_service import FileService
from services.llm import LLMService

file_service = FileService()
llm_service = LLMService()
ai_service = AIService(llm_service)

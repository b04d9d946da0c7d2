"""
AI Matching Tests Package

Scoring scenarios use FakeEmbeddingService from the root conftest, so no
test talks to OpenAI.

Running Tests:
    pytest ai_matching/tests/ -v
"""

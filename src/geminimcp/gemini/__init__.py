"""Gemini provider layer: request orchestration, sessions and response normalization."""

"""Markdown to PDF rendering core.

This package keeps the FastAPI route handlers thin:
- request validation and filename safety
- Markdown to HTML (GitHub-flavoured) and the print template
- render-engine sessions (headless Chromium) with guaranteed teardown
- a conversion service tying the stages together

Nothing is persisted: each conversion lives only for the duration of its
request, and render-engine processes are never shared between requests.
"""

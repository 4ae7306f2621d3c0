"""
MemoHub Backend — Middleware Package
=====================================

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Access Log] → [GZip] → [CORS] → Route

    - Rate Limit rejects over-budget clients before any other work
    - Request ID sets the correlation id used by every log line and error body
    - Access Log writes one line per request with status and duration;
      invitation tokens in paths are masked
"""

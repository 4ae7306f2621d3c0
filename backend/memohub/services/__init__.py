"""
MemoHub Backend — Services Layer
=================================

What:  Business logic between routes (HTTP) and the database.
How:   Stateless service classes with module-level singletons. Each method
       takes the request's AsyncSession and the acting user's id, performs
       its own permission checks, and raises MemoHubError subclasses.

Service Inventory:
    - permissions:         pure role → capability evaluator
    - user_service:        registration, login, profile
    - team_service:        teams, members, role changes (owner invariant)
    - invitation_service:  invitation workflow and expiry sweep
    - memo_service:        personal and team memos, tag linking, listing
    - tag_service:         per-user tags
    - stats_service:       team memo statistics
    - ai_service:          memo analysis and semantic search over an LLMService
    - gemini_service:      Gemini-backed LLMService (retry + circuit breaker)
    - search_service:      search log, popular searches, suggestions
    - search_store:        search history and saved searches in a key-value store
"""

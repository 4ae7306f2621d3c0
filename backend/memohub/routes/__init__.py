"""
MemoHub Backend — API Routes Package
=====================================

Route Inventory:
    - health.py:       GET  /health
    - auth.py:         POST /api/auth/register, /api/auth/login
    - users.py:        GET/PATCH /api/users/me
    - memos.py:        /api/memos (personal memos)
    - tags.py:         /api/tags
    - teams.py:        /api/teams, members, team invitations, team memos, stats
    - invitations.py:  /api/invitations (invitee side, token routes)
    - ai.py:           /api/ai (analysis, suggestions, semantic search)
    - search.py:       /api/search (log, popular, suggestions, history, favorites)

Routes stay thin: resolve the caller, parse parameters, call one service
method, shape the HTTP response. Permission decisions live in services.
"""

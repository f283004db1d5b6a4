"""
Agora — Forum Engine for Community Platforms
=============================================
Topic/post lifecycle, group-based forum permissions, vote-driven
reputation, audited moderation, and subscription fan-out for a
community forum.  Everything else (rendering, chat bridges, email)
talks to this package through :mod:`agora.services`.

Package layout::

    agora/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Reputation point table, badge milestones, tiers
    ├── errors.py          # NotFound / Forbidden / Conflict / InvalidInput / StorageFailure
    ├── context.py         # ForumContext: engine + config + response cache
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine, transactions, async helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default groups + forums
    ├── engine/
    │   ├── permissions.py # Principal + authorization predicates
    │   ├── slugs.py       # URL slug generation
    │   ├── voting.py      # Vote state machine
    │   ├── badges.py      # Reputation milestones + tiers
    │   ├── moderation.py  # Typed moderation actions
    │   └── cache.py       # Path-keyed response cache
    ├── services/
    │   ├── forum_service.py         # Topic/post lifecycle
    │   ├── reputation_service.py    # Ledger + cached reputation
    │   ├── vote_service.py          # Post voting
    │   ├── moderation_service.py    # Audit-logged moderation
    │   ├── subscription_service.py  # Subscriptions, bookmarks, notifications
    │   ├── search_service.py        # Search index + queries
    │   ├── poll_service.py          # Topic polls
    │   └── reconciliation_service.py # Counter recount
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT → Principal, context injection
        └── routes/        # Forum, actions, moderation endpoints
"""

__version__ = "0.1.0"

# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access:
#
#   article_service  — the Article aggregate: CRUD, listing, feed, favorites
#   comment_service  — comments on active articles
#   tag_service      — shared tags (resolve-or-create, listing)
#   user_service     — users and the follow graph the feed reads from
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.  Failures are raised as ``conduit.exceptions``
# errors and turned into responses by the handlers in ``conduit.main``.

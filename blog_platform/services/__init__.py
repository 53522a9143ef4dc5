# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for one concern:
#
#   auth_service     — registration, login, profile and password changes
#   blog_service     — blog lifecycle: create, update, soft delete, view, like
#   comment_service  — add / delete comments on a blog
#   listing_service  — public and per-author listings, search, categories
#   user_service     — admin edits and deactivation of user accounts
#   admin_service    — dashboard rollups, moderation listings and overrides
#   serializers      — explicit ORM -> dict projections shared by the above
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.  Failures are raised as ``blog_platform.errors``
# exceptions; permission decisions go through ``blog_platform.permissions``.

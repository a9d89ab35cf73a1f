"""
Services package for the GBV case tracker backend

Scoping, lifecycles and aggregation are pure; the *_service modules run the
commands against the database.
"""

"""Recommendation and user-similarity service for a watch-tracking product."""

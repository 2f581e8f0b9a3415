"""Local storage for fetched media."""

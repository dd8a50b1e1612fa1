"""Domain services for wallet authentication."""

"""Feature modules for neo-cache."""

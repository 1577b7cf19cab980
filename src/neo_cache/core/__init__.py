"""Core building blocks shared by every neo-cache feature."""

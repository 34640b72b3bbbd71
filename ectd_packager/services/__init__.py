"""File storage for uploaded source documents."""

"""SQLAlchemy infrastructure for the optional persistent audit sink."""

"""procwatch terminal application."""

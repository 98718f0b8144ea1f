"""Background worker for meeting application generation."""

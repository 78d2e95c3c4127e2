"""Background worker for the CCPP API."""

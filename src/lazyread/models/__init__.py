"""Domain and database models for the Lazy Read store."""

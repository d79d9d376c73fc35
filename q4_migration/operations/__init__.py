"""Delete, scrape, migrate and housekeeping operations."""

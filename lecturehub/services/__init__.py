"""Domain services: document persistence, catalog managers, scheduling and exports."""

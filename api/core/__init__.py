"""
Shared, cross-cutting code for the API.

`core/` holds the small building blocks every feature uses: configuration
loading, error reporting, and the database connection. Feature-specific
queries and business logic live in their own packages (e.g. `data/`).
"""

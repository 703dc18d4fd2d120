"""
Shared, cross-cutting code for the API.

`core/` holds the database wiring that every feature uses: backend
selection, the dialect adapters and startup migrations. Keep feature SQL
and business rules in the corresponding feature package (e.g. `vacantes/`).
"""

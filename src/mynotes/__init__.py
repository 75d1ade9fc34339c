"""
mynotes: local-first notes with a cloud identity.

Provides:
- Email/password sign-in through Firebase Authentication
- Per-user note CRUD in a local SQLite file (notes.db)
- A snapshot stream that pushes the current note list to every listener
"""

__version__ = "0.1.0"

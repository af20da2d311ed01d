"""Task Notes: categorized rich-text notes with soft delete and draft autosave."""

__version__ = "1.0.0"

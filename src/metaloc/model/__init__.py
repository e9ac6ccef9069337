"""Data model shared by the export and import pipelines."""

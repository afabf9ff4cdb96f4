# src/logpolish/pipelines/__init__.py

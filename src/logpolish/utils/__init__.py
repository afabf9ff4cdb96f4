# src/logpolish/utils/__init__.py

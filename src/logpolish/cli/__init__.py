# src/logpolish/cli/__init__.py

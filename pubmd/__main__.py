"""
Entry point for ``python -m pubmd``.

MIT License - Copyright (c) 2025 Markdown to PDF Converter
"""

from .converter import main

if __name__ == "__main__":
    main()

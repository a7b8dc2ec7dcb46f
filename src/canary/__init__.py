"""canary: lexer and parser for the Cy scripting language."""

__version__ = "0.1.0"

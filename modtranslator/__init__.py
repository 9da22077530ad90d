"""ModTranslator core: token protection, placeholder validation and retry policy."""

__version__ = "0.1.0"

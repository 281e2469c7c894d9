"""EffiTex: instruction-driven PDF accessibility remediation and inspection."""

__version__ = "1.0.0"

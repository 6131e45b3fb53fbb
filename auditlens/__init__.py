"""AuditLens: AI-assisted smart contract audit reports."""

__version__ = "0.1.0"

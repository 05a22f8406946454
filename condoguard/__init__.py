"""CondoGuard: identity and access resolution for multi-tenant condominium management."""

__version__ = "1.0.0"

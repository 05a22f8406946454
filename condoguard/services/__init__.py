"""
Business Logic Services Package.

Services depend on the Repository layer for data access and receive a
``StructuredLogger`` through ``__init__``.  They are wired together in
:func:`condoguard.container.create_engine`.
"""

"""Record store adapters.

The limiter and the event store only depend on the generic record-store
interface in ``base``; the concrete backend (in-process or SQL) is picked by
the factory from settings.
"""

"""
models/ - Domain Layer
======================
Plain dataclasses and enums for bills and sync bookkeeping.
No storage, network or presentation code lives here.
"""

"""Engine and schema helpers for the SQLAlchemy backend."""

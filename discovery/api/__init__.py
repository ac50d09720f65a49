"""HTTP adapter for the MeetsMatch discovery service."""

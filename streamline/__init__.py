"""Streamline catalog service: versioned metadata store for stream-processing topologies."""

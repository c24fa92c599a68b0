"""crumble - stream aggregation across heterogeneous Stremio addons."""

__version__ = "0.1.0"

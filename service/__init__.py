"""HTTP host for the resolver."""

"""HTTP services exposed by the resolver."""

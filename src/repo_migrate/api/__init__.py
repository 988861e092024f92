"""HTTP clients for the source and target hosts."""

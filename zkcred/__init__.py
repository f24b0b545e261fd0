"""Zero-knowledge credential protocol core."""

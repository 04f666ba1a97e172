"""Geographic helpers: Web-Mercator tiles and the ground texture."""

"""Identity layer: credentials, roles, permissions and guards."""

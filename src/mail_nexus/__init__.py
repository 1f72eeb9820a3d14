"""Mail Nexus: email query, statistics, and template services for a mail gateway."""

"""Parts search: federated suggestions, fitment lookups and faceted listings."""

"""Services: caching, remote gateway, pagination, personal list and browsing state."""

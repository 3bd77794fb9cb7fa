"""Version coordination core: configuration, domain, interfaces and services."""

"""Users, tenants and request authentication for tenant-scoped access."""
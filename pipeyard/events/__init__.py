"""Tenant business events, their bus and activity analytics."""
"""Helpers shared by the blueprints: backend gateways, authorization, SLA presentation."""

"""Marketplace services: stores, provider client, economy and campaign workflows."""

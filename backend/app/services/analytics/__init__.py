"""Declarative analytics engine: field registry, filters, date ranges, aggregation."""
